"""
End-to-end demo of the SecureFace flow against a running API.

Plays the browser's part: registers an account, enrolls a face descriptor,
stores the returned private key, then logs in by submitting the descriptor
and a signature over the server's challenge.

Since there is no camera here, the descriptor is random (or loaded from a
JSON file) and a slightly perturbed copy is used at login.

Usage:
    # Start the server first:
    uvicorn api.app:app --port 8000

    python scripts/demo_login.py --email alice@example.com --name Alice
    python scripts/demo_login.py --email alice@example.com --login-only --key-file alice.pem
    python scripts/demo_login.py --email bob@example.com --name Bob --noise 0.5
"""

import argparse
import json
import sys
from pathlib import Path

import httpx
import numpy as np

PROJECT_ROOT = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(PROJECT_ROOT))

from core.keys import sign_challenge  # noqa: E402

DEFAULT_API_URL = "http://localhost:8000"
DESCRIPTOR_DIM = 128


def check(response: httpx.Response, step: str) -> dict:
    """Print the outcome of a step and return its JSON body."""
    body = response.json()
    status = "OK" if response.is_success else "FAILED"
    print(f"[{status}] {step}: {response.status_code} {body.get('message', '')}")
    if not response.is_success:
        sys.exit(1)
    return body


def load_descriptor(path: str) -> np.ndarray:
    with open(path, "r", encoding="utf-8") as f:
        return np.asarray(json.load(f), dtype=np.float64)


def random_descriptor(seed: int) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.normal(0.0, 0.1, DESCRIPTOR_DIM)


def register_and_enroll(client: httpx.Client, email: str, name: str, descriptor: np.ndarray) -> str:
    """Register, enroll the face and return the private key."""
    check(client.post("/api/register", json={"email": email, "name": name}), "register")

    body = check(
        client.post("/api/register/face", json={"face_descriptor": descriptor.tolist()}),
        "enroll face",
    )
    return body["private_key"]


def login(client: httpx.Client, email: str, descriptor: np.ndarray, private_key: str) -> dict:
    """Run the three login steps and return the logged-in user."""
    body = check(client.post("/api/login/email", json={"email": email}), "start login")
    challenge = body["challenge"]

    if body["requires_face_recognition"]:
        check(
            client.post("/api/login/face", json={"face_descriptor": descriptor.tolist()}),
            "face check",
        )

    signature = sign_challenge(private_key, challenge)
    body = check(client.post("/api/login/verify", json={"signature": signature}), "signature")
    return body["user"]


def main():
    parser = argparse.ArgumentParser(description="SecureFace end-to-end demo client")
    parser.add_argument("--api-url", default=DEFAULT_API_URL, help="Base URL of the API")
    parser.add_argument("--email", required=True, help="Account email")
    parser.add_argument("--name", default="Demo User", help="Display name for registration")
    parser.add_argument("--descriptor", help="JSON file with the enrolled descriptor")
    parser.add_argument("--key-file", help="Where to store/read the private key PEM")
    parser.add_argument("--login-only", action="store_true", help="Skip registration")
    parser.add_argument("--noise", type=float, default=0.01,
                        help="Std-dev of noise added to the descriptor at login")
    parser.add_argument("--seed", type=int, default=7, help="Seed for the random descriptor")
    args = parser.parse_args()

    descriptor = load_descriptor(args.descriptor) if args.descriptor else random_descriptor(args.seed)
    key_path = Path(args.key_file) if args.key_file else None

    with httpx.Client(base_url=args.api_url, timeout=30.0) as client:
        if args.login_only:
            if key_path is None or not key_path.exists():
                print("ERROR: --login-only needs an existing --key-file")
                sys.exit(1)
            private_key = key_path.read_text(encoding="ascii")
        else:
            private_key = register_and_enroll(client, args.email, args.name, descriptor)
            if key_path is not None:
                key_path.write_text(private_key, encoding="ascii")
                print(f"Private key saved to {key_path}")
            check(client.post("/api/logout"), "logout after enrollment")

        noise = np.random.default_rng().normal(0.0, args.noise, descriptor.shape[0])
        user = login(client, args.email, descriptor + noise, private_key)
        print(f"Logged in as {user['name']} <{user['email']}> (id={user['id']})")

        check(client.get("/api/user"), "current user")
        check(client.post("/api/logout"), "logout")


if __name__ == "__main__":
    main()
