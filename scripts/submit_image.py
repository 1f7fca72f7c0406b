#!/usr/bin/env python3
"""
Usage:
    python scripts/submit_image.py --image data/samples/sample.jpg
    python scripts/submit_image.py --image a.jpg --image b.png --api http://localhost:3000
"""
import argparse
import json
import os
import sys
import httpx

parser = argparse.ArgumentParser()
parser.add_argument("--image", action="append", required=True, help="Repeat to upload several files")
parser.add_argument("--api", default="http://127.0.0.1:3000")
args = parser.parse_args()

files = []
for path in args.image:
    with open(path, "rb") as f:
        files.append(("media", (os.path.basename(path), f.read())))

r = httpx.post(f"{args.api}/upload", files=files, timeout=120)

if r.headers.get("content-type", "").startswith("application/json"):
    print(json.dumps(r.json(), indent=2))
else:
    print(r.text)

if r.status_code != 200:
    sys.exit(1)
