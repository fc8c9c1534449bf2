"""Launch the demo server with the identities in examples/records.json.

Usage (from the project root):
    JWT_SECRET=my-secret python examples/run.py

Then test with curl:
    curl http://localhost:8000/health                                   # 200 (open)
    curl -H "x-identity-token: <token>" localhost:8000/whoami           # 401 (no key)
    curl -H "x-identity-token: <token>" \
         -H "Authorization: Bearer abc123" localhost:8000/whoami        # 200
"""

import os

import jwt as pyjwt

from apikey_gate import InMemoryRecordStore, load_records, serve

records = load_records("./examples/records.json")
print(f"Identity records:    {len(records)}")

jwt_secret = os.environ.get("JWT_SECRET", "dev-secret")
sample_token = pyjwt.encode({"sub": "U1", "type": "user"}, jwt_secret, algorithm="HS256")
print(f"Identity token (U1): {sample_token}")

serve(
    InMemoryRecordStore(records),
    jwt_key=jwt_secret,
    host="127.0.0.1",
    port=8000,
    timeout=2.0,
)
