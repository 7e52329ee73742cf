# time_operations.py
#
# mpiexec -n 4 python time_operations.py

import json
import numpy as np

np.set_printoptions(precision=1, suppress=True, floatmode='fixed')

from pathlib import Path
ROOT_DIR = Path(__file__).resolve().parent
LOG_DIR = ROOT_DIR / "logs"
LOG_PATH = LOG_DIR / "matmul_times.json"

from mpi4py import MPI

from pmatmul import dmat, Communicator, matmul, row_range
from pmatmul.matmul import replicate, local_matmul, collect
from pmatmul.utilities import time_it, install_mpi_excepthook, mpi_print_variable_statistics

comm = Communicator(MPI.COMM_WORLD)
rank = comm.rank
size = comm.size


sizes = [
    (64, 64, 64),
    (256, 256, 256),
    (512, 512, 512),
    # (2048, 2048, 2048),
]


repeat = 5
warmups = 2
use_min_time = False
save_results = True


def make_inputs(n, k, m, dtype=np.float64):
    # Inputs live on the root only, like in a real call
    if rank == 0:
        A = dmat.from_numpy((np.arange(1, n * k + 1) / (n * k)).reshape(n, k).astype(dtype))
        B = dmat.from_numpy((np.arange(1, k * m + 1) / (k * m)).reshape(k, m).astype(dtype))
    else:
        A = dmat.zeros(n, k, dtype=dtype)
        B = dmat.zeros(k, m, dtype=dtype)
    return A, B


def save_records(records):
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    all_records = []
    if LOG_PATH.is_file():
        with open(LOG_PATH) as f:
            all_records = json.load(f)
    all_records.extend(records)
    with open(LOG_PATH, 'w') as f:
        json.dump(all_records, f, indent=4)


if __name__ == "__main__":
    install_mpi_excepthook()

    if rank == 0:
        print("=" * 40)
        print(f"Number of processes: {size}")
        print(f"warmups={warmups}, repeat={repeat}, use_min_time={use_min_time}")
        print("=" * 40)

    records = []
    for (n, k, m) in sizes:
        if rank == 0:
            print("-" * 40)
            print(f"n={n}, k={k}, m={m}")
            print("-" * 40)

        A, B = make_inputs(n, k, m)
        C = dmat.zeros(n, m)
        start, end = row_range(rank, size, n)

        operations = {
            "matmul":           lambda: matmul(A, B, C, comm),
            "replicate (bcast)": lambda: replicate(A, B, comm),
            "local_matmul":     lambda: local_matmul(A, B, C, start, end),
            "collect (isend/irecv)": lambda: collect(C, comm, wait_on_send=True),
        }

        results = []
        for op_name, op_func in operations.items():
            comm.Barrier()
            min_t, mean_t = time_it(op_func, repeat=repeat, warmups=warmups, timer_fn=MPI.Wtime)

            if use_min_time:
                time = MPI.COMM_WORLD.reduce(min_t, op=MPI.MIN, root=0)
            else:
                time = MPI.COMM_WORLD.reduce(mean_t, op=MPI.MAX, root=0)

            if op_name == "local_matmul":
                # Load balance across ranks (last rank may own fewer rows)
                mpi_print_variable_statistics("local_matmul time per rank", mean_t)

            # For sorting later
            if rank == 0:
                results.append((op_name, time))

        if rank == 0:
            results.sort(key=lambda x: x[1], reverse=True)  # sort by time (descending)
            max_chars = max(len(op_name) for op_name, _ in results)
            for op_name, time in results:
                print(f"{(op_name + ' =>'):>{max_chars + 5}} {time:.5f} seconds")

            records.append({
                "procs": size, "n": n, "k": k, "m": m,
                "times": {op_name: time for op_name, time in results},
            })

    if rank == 0 and save_results:
        save_records(records)
        print(f"Saved timings to {LOG_PATH}")
