import numpy as np
import pytest
import xarray as xr
from xarray.testing import assert_equal

from mdfiles.backends.entrypoint import MDFilesBackendEntrypoint, topology_coords
from mdfiles.parsers.dcd import write_dcd
from mdfiles.parsers.file_formats import InvalidTrajectoryFormatError

N_FRAMES = 10

TOPOLOGY_ATOMS = [
    # segment, resid, resname, name, charge
    ("WAT", "1", "TIP3", "O", -0.834),
    ("WAT", "1", "TIP3", "H", 0.417),
    ("WAT", "1", "TIP3", "H", 0.417),
]


def psf_contents(atoms) -> str:
    lines = ["PSF", "", "       1 !NTITLE", "* water", "", f"{len(atoms):8d} !NATOM"]
    for i, (segment, resid, resname, name, charge) in enumerate(atoms, start=1):
        lines.append(
            f"{i:8d} {segment:<4s} {resid:<4s} {resname:<4s} {name:<4s} {name:<4s} "
            f"{charge:14.6f}{1.0:14.6f}{0:8d}"
        )
    return "\n".join(lines + ["", ""])


@pytest.fixture
def positions() -> np.ndarray:
    return np.stack(
        [
            np.array([[0.0, 0.0, i], [0.9, 0.7, i], [-0.9, 0.7, i]])
            for i in range(N_FRAMES)
        ]
    ).astype(np.float32)


@pytest.fixture
def traj_fname(tmp_path, positions) -> str:
    path = tmp_path / "mock_traj.dcd"
    write_dcd(path, positions, unit_cells=np.full((N_FRAMES, 3), 10.0))
    return str(path)


@pytest.fixture
def topology_fname(tmp_path) -> str:
    path = tmp_path / "mock_topology.psf"
    path.write_text(psf_contents(TOPOLOGY_ATOMS))
    return str(path)


@pytest.fixture
def expected(positions) -> xr.Dataset:
    cell_data = np.broadcast_to(np.eye(3, dtype="float64") * 10.0, (N_FRAMES, 3, 3))

    return xr.Dataset(
        data_vars={
            "xyz": (["time", "atom_id", "xyz_dim"], positions.astype(np.float64)),
            "cell": (["time", "cell_vector", "xyz_dim"], cell_data),
        },
        coords={
            "time": ("time", np.arange(N_FRAMES)),
            "atom_id": ("atom_id", np.arange(3)),
            "xyz_dim": ("xyz_dim", list("xyz")),
            "cell_vector": ("cell_vector", list("ABC")),
        },
    )


@pytest.fixture
def expected_with_topology(expected) -> xr.Dataset:
    return expected.assign_coords(
        atoms=("atom_id", list("OHH")),
        segment=("atom_id", ["WAT"] * 3),
        resid=("atom_id", ["1"] * 3),
        resname=("atom_id", ["TIP3"] * 3),
        charge=("atom_id", [-0.834, 0.417, 0.417]),
    ).set_xindex("atoms")


@pytest.mark.parametrize(
    ("filename", "expected_result"),
    [
        ("traj.dcd", True),
        ("TRAJ.DCD", True),
        ("system.psf", False),
        ("protein.pdb", False),
        ("traj.xyz", False),
    ],
)
def test_guess_can_open(filename: str, expected_result: bool) -> None:
    assert MDFilesBackendEntrypoint().guess_can_open(filename) is expected_result


def test_open_dataset(traj_fname, expected) -> None:
    result = xr.load_dataset(traj_fname, engine=MDFilesBackendEntrypoint)

    assert_equal(result, expected)
    assert result.attrs == {
        "filename": traj_fname,
        "file_format": "dcd",
        "n_frames": N_FRAMES,
        "n_atoms": 3,
    }


def test_open_dataset_is_lazy(traj_fname) -> None:
    ds = xr.open_dataset(traj_fname, engine=MDFilesBackendEntrypoint)
    assert not isinstance(ds["xyz"].variable._data, np.ndarray)


@pytest.mark.parametrize("start", [None, 1, -4])
@pytest.mark.parametrize("stop", [None, 3, -2])
@pytest.mark.parametrize("step", [None, 2, 3])
def test_open_dataset_time_indexing(traj_fname, expected, start, stop, step) -> None:
    result = xr.open_dataset(traj_fname, engine=MDFilesBackendEntrypoint).isel(
        time=slice(start, stop, step)
    )

    assert_equal(result.load(), expected.isel(time=slice(start, stop, step)))


@pytest.mark.parametrize("start", [None, 0, 1, -2])
@pytest.mark.parametrize("stop", [None, 1, -1])
@pytest.mark.parametrize("step", [None, 2])
def test_open_dataset_atom_id_indexing(
    traj_fname, expected, start, stop, step
) -> None:
    result = xr.open_dataset(traj_fname, engine=MDFilesBackendEntrypoint).sel(
        atom_id=slice(start, stop, step)
    )

    assert_equal(result.load(), expected.sel(atom_id=slice(start, stop, step)))


@pytest.mark.parametrize("time", [0, 5, -1])
@pytest.mark.parametrize("atom_id", [0, 2])
def test_open_dataset_scalar_indexing(traj_fname, expected, time, atom_id) -> None:
    result = xr.open_dataset(traj_fname, engine=MDFilesBackendEntrypoint).isel(
        time=time, atom_id=atom_id
    )

    assert_equal(result.load(), expected.isel(time=time, atom_id=atom_id))


def test_open_dataset_dt_and_dtype(traj_fname, positions) -> None:
    result = xr.load_dataset(
        traj_fname, engine=MDFilesBackendEntrypoint, dt=0.5, dtype="float32"
    )

    np.testing.assert_array_equal(result["time"], np.arange(N_FRAMES) * 0.5)
    assert result["xyz"].dtype == np.float32
    np.testing.assert_array_equal(result["xyz"], positions)


def test_open_dataset_drop_variables(traj_fname) -> None:
    result = xr.load_dataset(
        traj_fname, engine=MDFilesBackendEntrypoint, drop_variables="cell"
    )

    assert "cell" not in result
    assert "xyz" in result


@pytest.mark.parametrize("atom_selection", ["O", "H"])
@pytest.mark.parametrize(
    "time_slices",
    [slice(None), slice(None, None, 2), slice(None, None, 3), slice(1, 10, 3)],
)
def test_open_dataset_topology_atoms_indexing(
    traj_fname, topology_fname, expected_with_topology, atom_selection, time_slices
) -> None:
    result = xr.load_dataset(
        traj_fname, engine=MDFilesBackendEntrypoint, topology=topology_fname
    ).sel(atoms=atom_selection, time=time_slices)

    assert_equal(
        result, expected_with_topology.sel(atoms=atom_selection, time=time_slices)
    )


def test_open_dataset_topology_atom_count_mismatch(tmp_path, traj_fname) -> None:
    path = tmp_path / "too_small.psf"
    path.write_text(psf_contents(TOPOLOGY_ATOMS[:2]))

    with pytest.raises(ValueError):
        xr.open_dataset(traj_fname, engine=MDFilesBackendEntrypoint, topology=path)


def test_open_dataset_unreadable_topology(tmp_path, traj_fname) -> None:
    with pytest.raises(ValueError):
        xr.open_dataset(
            traj_fname,
            engine=MDFilesBackendEntrypoint,
            topology=tmp_path / "missing.psf",
        )


@pytest.mark.parametrize("file_format", ["psf", "xyz"])
def test_open_dataset_invalid_file_format(traj_fname, file_format) -> None:
    with pytest.raises(InvalidTrajectoryFormatError):
        xr.open_dataset(
            traj_fname, engine=MDFilesBackendEntrypoint, file_format=file_format
        )


def test_topology_coords(topology_fname) -> None:
    coords = topology_coords(topology_fname, 3)

    dims, names = coords["atoms"]
    assert dims == ("atom_id",)
    np.testing.assert_array_equal(names, ["O", "H", "H"])
    np.testing.assert_allclose(coords["charge"][1], [-0.834, 0.417, 0.417])
