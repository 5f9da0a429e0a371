"""
tapegrad: A Worked Example
==========================

Problem: fit a tiny two-layer elementwise model

    y = a * tanh(w * x) + b

to samples of sin(x), using only the tape and plain gradient descent.

Every parameter is traced onto one shared tape per step; after the backward
pass each parameter pulls its own gradient off the tape by id. The loss is
scaled before the backward pass because ``update_with_gradients`` steps
with size 1.
"""

import numpy as np

import tapegrad as tg

N = 32
LEARNING_RATE = 0.1
STEPS = 500


def main():
    rng = np.random.default_rng(0)

    Vec = tg.Tensor1D[N]
    x = Vec(np.linspace(-2.0, 2.0, N))
    target = x.sin()

    a = Vec.randn(rng)
    w = Vec.randn(rng)
    b = Vec.zeros()
    params = [a, w, b]

    for step in range(STEPS + 1):
        tape = tg.GradientTape()
        ta, tw, tb = (p.trace(tape) for p in params)

        pred = ta * (tw * x).tanh() + tb
        loss = (pred - target).square().mean()
        (loss * (LEARNING_RATE * N)).backward()

        for p in params:
            p.update_with_gradients(tape)

        if step % 100 == 0:
            print(f"step {step:4d}  loss {loss.item():.6f}")


if __name__ == "__main__":
    main()
