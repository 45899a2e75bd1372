import pytest
import torch
from pspca.core.struct import Structure, Field
from pspca.core.backend import materialize, select_backend
from pspca.vb.options import PSPCAOptions


class _Point(Structure):
    x: float
    y: float = 0.
    tags: list = Field(default_factory=list)
    positive: float = Field(1., validator=lambda v: v > 0)


def test_structure_defaults():
    p = _Point(x=1.)
    assert p.x == 1. and p.y == 0.
    assert p['tags'] == []
    q = _Point({'x': 2.}, y=3.)
    assert (q.x, q.y) == (2., 3.)
    p.tags.append('a')
    assert q.tags == []


def test_structure_errors():
    with pytest.raises(TypeError):
        _Point()
    with pytest.raises(KeyError):
        _Point(x=1., z=2.)
    p = _Point(x=1.)
    with pytest.raises(ValueError):
        p.positive = -1.
    with pytest.raises(KeyError):
        p['z'] = 0


def test_structure_update_copy():
    p = _Point(x=1.)
    p.update({'y': 2.}, x=5.)
    assert (p.x, p.y) == (5., 2.)
    q = p.copy()
    assert q == p
    q.y = 4.
    assert p.y == 2.
    assert list(p) == ['x', 'y', 'tags', 'positive']


def test_options_defaults():
    opt = PSPCAOptions()
    assert opt.conv_crit == 1e-9
    assert opt.maxiter == 200
    assert opt.fixed_sparse == 25
    assert opt.fixed_ard is None and opt.fixed_noise is None
    assert opt.noise_process and opt.sparse_prior and opt.ard_prior
    assert not opt.mean_process
    assert not opt.heteroscedastic


def test_options_resolve():
    opt = PSPCAOptions(fixed_sparse=10, alpha_a=2., gamma_a=3., tau_a=4.)
    res = opt.resolve(scale=6., nb_voxels=3, nb_subjects=2)
    assert res.fixed_ard == 15 and res.fixed_noise == 20
    assert res.alpha_b == pytest.approx(2. * 6. / 3)
    assert res.gamma_b == pytest.approx(3. * 6. / (2 * 3))
    assert res.tau_b == pytest.approx(4. * 6. / 3)
    # resolving returns a copy
    assert opt.fixed_ard is None and opt.alpha_b is None

    opt = PSPCAOptions(noise_model='heteroscedastic', tau_a=4., tau_b=None)
    res = opt.resolve(scale=6., nb_voxels=3, nb_subjects=2)
    assert res.tau_b == pytest.approx(24.)


def test_options_user_values_kept():
    opt = PSPCAOptions(fixed_ard=3, fixed_noise=1, alpha_b=0.5)
    res = opt.resolve(scale=6., nb_voxels=3, nb_subjects=2)
    assert (res.fixed_ard, res.fixed_noise, res.alpha_b) == (3, 1, 0.5)


def test_options_validation():
    with pytest.raises(ValueError):
        PSPCAOptions(noise_model='isotropic')
    with pytest.raises(ValueError):
        PSPCAOptions(maxiter=0)
    with pytest.raises(ValueError):
        PSPCAOptions(tau_a=-1.)
    with pytest.raises(KeyError):
        PSPCAOptions(max_iter=10)


def test_select_backend():
    x = torch.zeros([3, 4, 2], dtype=torch.int64)
    backend = select_backend(x)
    assert backend['dtype'] == torch.get_default_dtype()
    assert backend['device'] == torch.device('cpu')
    x = torch.zeros([3, 4, 2], dtype=torch.double)
    assert select_backend(x)['dtype'] == torch.double
    assert select_backend(x, dtype=torch.float32)['dtype'] == torch.float32
    with pytest.raises(TypeError):
        select_backend(x, dtype=torch.int32)


@pytest.mark.skipif(torch.cuda.is_available(), reason='CUDA is available')
def test_select_backend_fallback():
    x = torch.zeros([3, 4, 2])
    with pytest.warns(RuntimeWarning):
        backend = select_backend(x, accelerate=True)
    assert backend['device'] == torch.device('cpu')


def test_materialize():
    p = _Point(x=torch.ones(2, requires_grad=True), tags=[torch.zeros(1)])
    out = materialize((p, {'a': torch.ones(1)}, 3))
    assert not out[0].x.requires_grad
    assert out[0].tags[0].device == torch.device('cpu')
    assert isinstance(out[1], dict) and out[2] == 3


def test_structure_equality_with_tensors():
    from pspca.vb.finalize import FirstMoments
    A = torch.randn([4, 2])
    S = torch.randn([2, 3, 2])
    m1 = FirstMoments(A=A, S=S, gamma=torch.ones(2))
    m2 = FirstMoments(A=A.clone(), S=S.clone(), gamma=torch.ones(2))
    assert m1 == m2
    m2.gamma = torch.full([2], 2.)
    assert m1 != m2
    m2.gamma = torch.ones(3)
    assert m1 != m2
    m2.gamma = 1.
    assert m1 != m2
