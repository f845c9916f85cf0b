#!/usr/bin/env python3
import sys
from importlib import metadata


def main() -> None:
    print(f"interpreter: {sys.executable}")
    print(f"version:     {sys.version.split()[0]}")
    if len(sys.argv) > 1 and sys.argv[1] == "true":
        for dist in sorted(metadata.distributions(), key=lambda d: d.metadata["Name"].lower()):
            print(f"  {dist.metadata['Name']}=={dist.version}")


if __name__ == "__main__":
    main()
