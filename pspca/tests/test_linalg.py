import math
import pytest
import torch
from pspca.core import linalg
from pspca.core.math import gaussian_entropy

sizes = (1, 3, 8)
batches = ([], [5], [2, 3])


def _random_spd(batch, size, dtype=torch.double):
    x = torch.randn([*batch, size, 2*size], dtype=dtype)
    a = x.matmul(linalg.t(x)) / (2*size)
    return linalg.add_diag_(a, 0.1)


@pytest.mark.parametrize('size', sizes)
@pytest.mark.parametrize('batch', batches)
def test_inv(batch, size):
    a = _random_spd(batch, size)
    ia = linalg.inv(a)
    eye = torch.eye(size, dtype=a.dtype).expand(a.shape)
    assert ia.shape == a.shape
    assert torch.allclose(a.matmul(ia), eye, atol=1e-8)
    assert torch.equal(ia, linalg.t(ia))
    assert linalg.is_posdef(ia)


def test_inv_keeps_dtype():
    a = _random_spd([4], 3, dtype=torch.float32)
    assert linalg.inv(a).dtype == torch.float32


def test_inv_batch_independence():
    a = _random_spd([6], 4)
    ia = linalg.inv(a)
    for i in range(6):
        assert torch.allclose(ia[i], linalg.inv(a[i]))


def test_inv_reconditions_failing_entries_only():
    a = _random_spd([3], 4)
    singular = torch.zeros([4, 4], dtype=a.dtype)
    singular[0, 0] = 1
    singular[1, 1] = 1
    a[1] = singular
    with pytest.warns(RuntimeWarning):
        ia = linalg.inv(a)
    assert torch.isfinite(ia).all()
    assert torch.allclose(ia[0], linalg.inv(a[0]))
    assert torch.allclose(ia[2], linalg.inv(a[2]))


def test_inv_degenerate():
    a = -torch.eye(3, dtype=torch.double).expand([2, 3, 3]).clone()
    with pytest.warns(RuntimeWarning):
        with pytest.raises(linalg.NumericalDegeneracy):
            linalg.inv(a)


def test_inv_nonfinite():
    a = _random_spd([2], 3)
    a[0, 0, 0] = float('nan')
    with pytest.raises(linalg.NumericalDegeneracy):
        linalg.inv(a)


@pytest.mark.parametrize('size', sizes)
def test_logdet(size):
    a = _random_spd([4], size)
    assert torch.allclose(linalg.logdet(a), torch.logdet(a))


def test_gaussian_entropy():
    cov = torch.eye(3, dtype=torch.double) * 2
    h = gaussian_entropy(cov)
    expected = 1.5 * (1 + torch.log(torch.tensor(2 * math.pi * 2.,
                                                 dtype=torch.double)))
    assert torch.allclose(h, expected)


def test_is_posdef():
    a = _random_spd([3], 4)
    assert linalg.is_posdef(a)
    a[1, 0, 1] += 1
    assert not linalg.is_posdef(a)
    assert not linalg.is_posdef(-torch.eye(3, dtype=torch.double))
