import os
import sys
import time

sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), "backend"))

from logpager.indexer import build_index
from logpager.reader import LineReader
from logpager.sources import LocalFileSource

from gen_big_file import generate_test_file

CHUNK_SIZES = [64 * 1024, 1024 * 1024, 8 * 1024 * 1024]

def bench_index(source, chunk_size):
    start_time = time.time()
    index = build_index(source, "utf-8", chunk_size)
    return index, time.time() - start_time

def bench_reads(reader, windows=1000, count=50):
    # Jump around the file the way a scrolling viewport would
    start_time = time.time()
    step = max(1, reader.line_count // windows)
    for line_start in range(0, reader.line_count, step):
        reader.read_lines(line_start, count)
    return time.time() - start_time

if __name__ == "__main__":
    test_file = r"tests/logs/large_test.log"
    if not os.path.exists(test_file):
        print(f"Test file {test_file} not found. Creating a 100MB one.")
        os.makedirs(os.path.dirname(test_file), exist_ok=True)
        generate_test_file(test_file, 0.1)

    source = LocalFileSource(test_file)
    try:
        print(f"Benchmarking indexing for {test_file} ({source.size/1024/1024:.1f} MB)...")

        counts = set()
        for chunk_size in CHUNK_SIZES:
            index, duration = bench_index(source, chunk_size)
            counts.add(index.line_count)
            print(f"chunk {chunk_size // 1024:>5} KB: {index.line_count} lines, {duration:.4f}s")

        if len(counts) != 1:
            print(f"Line counts differ between chunk sizes: {sorted(counts)}")

        reader = LineReader(source, index)
        print(f"Random window reads: {bench_reads(reader):.4f}s")
    finally:
        source.close()
