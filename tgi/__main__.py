"""Allow running the processing tier with ``python -m tgi``."""

from tgi.main import run

if __name__ == "__main__":
    run()
