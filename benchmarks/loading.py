import time

import numpy as np
import xarray as xr

from mdfiles.backends.entrypoint import MDFilesBackendEntrypoint
from mdfiles.parsers.dcd import DCDFile


def print_run_times(load_fn, filename, index=slice(None), n_iter=1, **kwargs):
    times = []

    for _ in range(n_iter):
        t, out = time_fn(load_fn, filename, index=index, **kwargs)
        times.append(t)
        output_size = len(out)

    if len(times) > 1:
        run_time = f"{np.mean(times):.3f} +/ {np.std(times):.3f}"
    else:
        run_time = f"{times[0]:.3f}"

    print(
        f" {load_fn.__name__} : {run_time} seconds over {n_iter} iterations for trajectory with {output_size} frames"
    )


def time_fn(fn, *args, **kwargs):
    start = time.time()
    output = fn(*args, **kwargs)
    end = time.time()
    return (end - start, output)


def load_xarray(filename, topology=None, index=slice(None)):
    ds = (
        xr.open_dataset(
            filename,
            engine=MDFilesBackendEntrypoint,
            topology=topology,
        )
        .isel(time=index)
        .xyz.compute()
    )
    return ds


def load_dcd_file(filename, index=slice(None)):
    with DCDFile(filename) as dcd:
        frames = range(dcd.n_frames)[index]
        return dcd.read_frames(frames)


def main() -> None:
    # generated by tests/data/gen_traj.py
    filename = "./tests/data/test_npt_1000.dcd"
    topology = "./tests/data/test_npt_1000.psf"
    index = slice(None, None, 10)
    N = 5

    print_run_times(load_xarray, filename, topology=topology, index=index, n_iter=N)
    print_run_times(load_dcd_file, filename, index=index, n_iter=N)


if __name__ == "__main__":
    main()
