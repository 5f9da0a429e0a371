"""Tests for shaped tensor types, tracing and parameter updates."""

import numpy as np
import pytest

import tapegrad as tg


class TestShapedTypes:
    """Tests for rank classes and subscripting."""

    def test_subscript_fixes_shape(self):
        cls = tg.Tensor2D[2, 3]
        assert cls.SHAPE == (2, 3)
        assert cls.RANK == 2
        assert issubclass(cls, tg.Tensor2D)
        assert cls.__name__ == "Tensor2D[2, 3]"

    def test_subscript_cached(self):
        assert tg.Tensor1D[3] is tg.Tensor1D[3]
        assert tg.Tensor3D[1, 2, 3] is not tg.Tensor3D[3, 2, 1]

    def test_all_ranks(self):
        assert tg.Tensor0D.zeros().shape == ()
        assert tg.Tensor1D[2].zeros().shape == (2,)
        assert tg.Tensor2D[2, 3].zeros().shape == (2, 3)
        assert tg.Tensor3D[2, 3, 4].zeros().shape == (2, 3, 4)
        assert tg.Tensor4D[1, 2, 3, 4].zeros().shape == (1, 2, 3, 4)

    def test_wrong_number_of_extents(self):
        with pytest.raises(TypeError):
            tg.Tensor2D[3]
        with pytest.raises(TypeError):
            tg.Tensor1D[2, 2]

    def test_cannot_subscript_twice(self):
        with pytest.raises(TypeError):
            tg.Tensor1D[2][3]
        with pytest.raises(TypeError):
            tg.Tensor0D[1]

    def test_unshaped_construction_rejected(self):
        with pytest.raises(TypeError):
            tg.Tensor1D([1.0, 2.0])
        with pytest.raises(TypeError):
            tg.Tensor2D.zeros()

    def test_data_shape_checked(self):
        with pytest.raises(ValueError):
            tg.Tensor1D[3]([1.0, 2.0])

    def test_tensor_factory_infers_type(self):
        x = tg.tensor([[1.0, 2.0], [3.0, 4.0]])
        assert type(x) is tg.Tensor2D[2, 2]
        s = tg.tensor(3.0)
        assert type(s) is tg.Tensor0D
        assert s.item() == 3.0

    def test_tensor_factory_rank_limit(self):
        with pytest.raises(TypeError):
            tg.tensor(np.zeros((1, 1, 1, 1, 1)))


class TestConstruction:
    """Tests for construction helpers."""

    def test_zeros_ones(self):
        np.testing.assert_array_equal(tg.Tensor2D[2, 2].zeros().numpy(), np.zeros((2, 2)))
        np.testing.assert_array_equal(tg.Tensor1D[3].ones().numpy(), np.ones(3))

    def test_rand(self, rng):
        x = tg.Tensor2D[3, 4].rand(rng)
        assert np.all(x.numpy() >= 0.0)
        assert np.all(x.numpy() < 1.0)

    def test_randn(self, rng):
        x = tg.Tensor1D[1000].randn(rng)
        assert abs(float(x.numpy().mean())) < 0.2
        assert 0.8 < float(x.numpy().std()) < 1.2

    def test_random_source_drives_values(self):
        a = tg.Tensor1D[4].randn(np.random.default_rng(3))
        b = tg.Tensor1D[4].randn(np.random.default_rng(3))
        np.testing.assert_array_equal(a.numpy(), b.numpy())
        assert a.id != b.id

    def test_helpers_never_attach_tape(self, rng):
        for t in (tg.Tensor1D[2].zeros(), tg.Tensor1D[2].ones(),
                  tg.Tensor1D[2].rand(rng), tg.Tensor1D[2].randn(rng)):
            assert t.tape is None

    def test_float32(self):
        x = tg.Tensor1D[2]([1, 2])
        assert x.numpy().dtype == np.float32

    def test_construction_copies_input(self):
        src = np.array([1.0, 2.0], dtype=np.float32)
        x = tg.Tensor1D[2](src)
        src[0] = 5.0
        assert x.numpy()[0] == 1.0


class TestDataAccess:
    """Tests for read-only and mutable access."""

    def test_data_is_read_only(self, vec3):
        view = vec3.data()
        with pytest.raises(ValueError):
            view[0] = 10.0

    def test_mut_data_writes_through(self, vec3):
        vec3.mut_data()[0] = 10.0
        np.testing.assert_array_equal(vec3.data(), [10.0, 2.0, 3.0])

    def test_numpy_is_copy(self, vec3):
        arr = vec3.numpy()
        arr[0] = 10.0
        assert vec3.numpy()[0] == 1.0

    def test_repr(self, vec3):
        assert repr(vec3).startswith("Tensor1D[3](")
        assert "traced" in repr(vec3.trace())


class TestTrace:
    """Tests for starting gradient tracking."""

    def test_trace_alias_shares_id(self, vec3):
        alias = vec3.trace()
        assert alias.id == vec3.id
        assert type(alias) is type(vec3)
        assert isinstance(alias.tape, tg.GradientTape)
        assert vec3.tape is None

    def test_trace_copies_data(self, vec3):
        alias = vec3.trace()
        vec3.mut_data()[0] = 7.0
        assert alias.numpy()[0] == 1.0

    def test_trace_onto_given_tape(self, vec3):
        tape = tg.GradientTape()
        assert vec3.trace(tape).tape is tape

    def test_trace_registers_shape(self, vec3):
        tape = tg.GradientTape()
        vec3.trace(tape)
        assert tape.gradient_for(vec3.id).shape == (3,)


class TestBinaryOps:
    """Tests for binary operations and reductions."""

    def test_add_sub(self, vec3):
        other = tg.Tensor1D[3]([1.0, 1.0, 1.0])
        x = vec3.trace()
        y = (x + other) - other.square()
        np.testing.assert_array_equal(y.numpy(), [1.0, 2.0, 3.0])
        tape = y.backward()
        np.testing.assert_array_equal(tape.gradient_for(vec3), np.ones(3))

    def test_sub_gradient_sign(self, vec3):
        c = tg.Tensor1D[3].zeros()
        tape = (c - vec3.trace()).backward()
        np.testing.assert_array_equal(tape.gradient_for(vec3), -np.ones(3))

    def test_scalar_scaling(self, vec3):
        x = vec3.trace()
        y = 2 * x / 4.0
        np.testing.assert_array_equal(y.numpy(), [0.5, 1.0, 1.5])
        np.testing.assert_array_equal(y.backward().gradient_for(vec3), [0.5, 0.5, 0.5])

    def test_neg(self, vec3):
        y = -vec3.trace()
        np.testing.assert_array_equal(y.numpy(), [-1.0, -2.0, -3.0])
        np.testing.assert_array_equal(y.backward().gradient_for(vec3), -np.ones(3))

    def test_shape_mismatch(self, vec3):
        with pytest.raises(ValueError):
            vec3 + tg.Tensor1D[2].zeros()

    def test_bad_operand(self, vec3):
        with pytest.raises(TypeError):
            vec3.add(1.0)

    def test_sum(self, rng):
        x = tg.Tensor2D[2, 3].randn(rng)
        s = x.trace().sum()
        assert type(s) is tg.Tensor0D
        assert s.item() == pytest.approx(float(x.numpy().sum()), rel=1e-5)
        np.testing.assert_array_equal(s.backward().gradient_for(x), np.ones((2, 3)))

    def test_mean(self, rng):
        x = tg.Tensor1D[4].randn(rng)
        m = x.trace().mean()
        assert m.item() == pytest.approx(float(x.numpy().mean()), rel=1e-5)
        np.testing.assert_allclose(m.backward().gradient_for(x), np.full(4, 0.25))

    def test_gradcheck_composite(self, rng):
        """Tape gradients of a loss match finite differences."""
        target = tg.Tensor1D[3]([0.5, -0.5, 1.0])

        def loss(x):
            return (x.tanh() * x.sigmoid() - target).square().mean()

        assert tg.check_gradients(loss, tg.Tensor1D[3].randn(rng))

    def test_gradcheck_rank3(self, rng):
        def loss(x):
            return (x.sin() + x.square()).exp().sum()

        x = tg.Tensor3D[2, 2, 2](tg.Tensor3D[2, 2, 2].rand(rng).numpy() * 0.5)
        assert tg.check_gradients(loss, x)

    def test_divide_by_zero_gives_inf(self):
        x = tg.Tensor1D[2]([1.0, -1.0])
        y = x.trace() / 0
        np.testing.assert_array_equal(y.numpy(), [np.inf, -np.inf])
        assert np.all(np.isposinf(y.backward().gradient_for(x)))

    def test_zero_over_zero_gives_nan(self):
        y = tg.Tensor1D[2].zeros() / 0.0
        assert np.all(np.isnan(y.numpy()))

    def test_gradcheck_detects_mismatch(self, rng):
        def loss(x):
            y = x.square().sum()
            tape = y.tape
            if tape is not None:
                # break the recorded rule but keep the forward value
                entry = tape.entries[-1]
                tape._entries[-1] = tg.TapeEntry(entry.parent_ids, entry.result_id,
                                                 lambda g: (np.zeros(3, dtype=np.float32),))
            return y

        x = tg.Tensor1D[3]([1.0, 2.0, 3.0])
        with pytest.raises(AssertionError):
            tg.check_gradients(loss, x)


class TestUpdate:
    """Tests for in-place parameter updates."""

    def test_update_subtracts_gradient(self, vec3):
        tape = vec3.trace().square().backward()
        vec3.update_with_gradients(tape)
        np.testing.assert_array_equal(vec3.numpy(), [-1.0, -2.0, -3.0])

    def test_update_keeps_id(self, vec3):
        original = vec3.id
        vec3.update_with_gradients(vec3.trace().square().backward())
        assert vec3.id == original

    def test_zero_gradient_leaves_data_unchanged(self, rng):
        x = tg.Tensor2D[3, 3].randn(rng)
        before = x.numpy().tobytes()
        unrelated = tg.Tensor1D[2].ones().trace().exp().backward()
        x.update_with_gradients(unrelated)
        assert x.numpy().tobytes() == before

    def test_gradient_descent_reduces_loss(self, rng):
        w = tg.Tensor1D[5].randn(rng)
        target = tg.Tensor1D[5].zeros()

        def loss_of(t):
            return (t - target).square().mean()

        first = loss_of(w).item()
        for _ in range(20):
            w.update_with_gradients(loss_of(w.trace()).backward())
        assert loss_of(w).item() < first

    def test_update_shape_mismatch(self, vec3):
        tape = tg.GradientTape()
        tape.record([vec3.id], 10**9, lambda g: (np.ones(2, dtype=np.float32),),
                    shapes={10**9: (2,)})
        with pytest.raises(ValueError):
            vec3.update_with_gradients(tape)


class TestRandomize:
    """Tests for in-place refills."""

    def test_randomize_in_place(self, rng):
        x = tg.Tensor2D[2, 2].zeros()
        original = x.id
        x.randomize(rng.standard_normal)
        assert x.id == original
        assert not np.allclose(x.numpy(), 0.0)

    def test_randomize_uniform(self, rng):
        x = tg.Tensor1D[100].zeros()
        x.randomize(lambda size: rng.uniform(-1.0, 1.0, size=size))
        assert np.all(np.abs(x.numpy()) <= 1.0)
