import pytest
import torch
from pspca.core import linalg
from pspca.vb.options import PSPCAOptions
from pspca.vb.state import check_shapes, init_state, InvalidShape


def test_check_shapes():
    x = torch.randn([10, 6, 2])
    assert check_shapes(x) == 5
    assert check_shapes(x, 6) == 6
    assert check_shapes(x, 1) == 1


@pytest.mark.parametrize('nb_components', (0, 7, -1, 2.5, True, '3'))
def test_check_shapes_components(nb_components):
    x = torch.randn([10, 6, 2])
    with pytest.raises(InvalidShape):
        check_shapes(x, nb_components)


@pytest.mark.parametrize('shape', ([10, 6], [10, 6, 2, 1], [0, 6, 2]))
def test_check_shapes_data(shape):
    with pytest.raises(InvalidShape):
        check_shapes(torch.zeros(shape))


def test_invalid_shape_is_value_error():
    assert issubclass(InvalidShape, ValueError)


@pytest.mark.parametrize('noise_model', ('homoscedastic', 'heteroscedastic'))
@pytest.mark.parametrize('mean_process', (False, True))
def test_init_state(noise_model, mean_process):
    V, T, B, D = 7, 5, 3, 2
    x = torch.randn([V, T, B], dtype=torch.double)
    opt = PSPCAOptions(noise_model=noise_model, mean_process=mean_process)
    state, res = init_state(x, D, opt)
    nb_noise = V if noise_model == 'heteroscedastic' else 1

    assert state.shape == (V, T, D, B)
    assert state.X.shape == (B, V, T)
    assert torch.equal(state.X[1], x[:, :, 1])
    assert state.EA.shape == (V, D)
    assert state.Sigma_A.shape == (V, D, D)
    assert state.ES.shape == (B, D, T)
    assert state.Sigma_S.shape == (B, D, D)
    assert state.ESSt.shape == (B, D, D)
    assert state.Emu.shape == state.Sigma_mu.shape == (B, V)
    assert state.b_alpha.shape == (V, D)
    assert state.b_gamma.shape == (D,)
    assert state.b_tau.shape == state.sse.shape == (B, nb_noise)
    assert linalg.is_posdef(state.Sigma_A)
    assert linalg.is_posdef(state.Sigma_S)

    scale = x.square().mean().item()
    assert state.scale == pytest.approx(scale)
    assert res.alpha_b == pytest.approx(1e-6 * scale / V)
    assert torch.allclose(state.b_tau, torch.full_like(state.b_tau,
                                                       res.tau_b * scale))
    if mean_process:
        assert torch.allclose(state.Emu, x.mean(1).T)
        assert (state.Sigma_mu == 1).all()
    else:
        assert (state.Emu == 0).all() and (state.Sigma_mu == 0).all()


def test_init_state_least_squares():
    # with D = V the least-squares sources reconstruct the data exactly
    V, T, B = 4, 6, 2
    x = torch.randn([V, T, B], dtype=torch.double)
    state, _ = init_state(x, V, PSPCAOptions())
    recon = state.EA.matmul(state.ES)
    assert torch.allclose(recon, state.X, atol=1e-8)


def test_init_state_integer_data():
    x = torch.randint(0, 10, [5, 4, 2])
    state, _ = init_state(x, 2, PSPCAOptions())
    assert state.X.dtype == torch.get_default_dtype()


@pytest.mark.parametrize('nb_components',
                         (torch.tensor(3), torch.tensor(3).int()))
def test_check_shapes_integer_like(nb_components):
    x = torch.randn([10, 6, 2])
    out = check_shapes(x, nb_components)
    assert out == 3 and type(out) is int


def test_check_shapes_numpy_integer():
    np = pytest.importorskip('numpy')
    x = torch.randn([10, 6, 2])
    assert check_shapes(x, np.int64(3)) == 3
