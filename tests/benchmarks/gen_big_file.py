import os
import sys

sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), "backend"))

from logpager.loggen import LogGenOptions, generate_log_stream

def generate_test_file(path, size_gb=1.2, log_format="apache-combined"):
    """Generates a dummy access log of approx size_gb."""
    opts = LogGenOptions(format=log_format, total_size_bytes=int(size_gb * 1024 * 1024 * 1024), seed=1)
    current_size = 0

    print(f"Generating {size_gb}GB test file at {path}...")

    with open(path, 'wb') as f:
        for batch in generate_log_stream(opts):
            f.write(batch)
            current_size += len(batch)
            if current_size % (64 * 1024 * 1024) < len(batch):
                print(f"Progress: {current_size / 1024 / 1024:.2f} MB / {size_gb * 1024:.2f} MB", end='\r')

    print(f"\nDone! Generated {path} ({current_size / 1024 / 1024 / 1024:.2f} GB)")

if __name__ == "__main__":
    file_path = "large_test.log"
    if len(sys.argv) > 1:
        file_path = sys.argv[1]

    generate_test_file(file_path, 1.2)
