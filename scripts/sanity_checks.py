import os
import sys

import requests


def check(endpoint: str, key: str, expected=None) -> bool:
    url = f"{BASE_URL}{endpoint}"
    try:
        res = requests.get(url, timeout=10)
    except requests.RequestException:
        print(f"FAIL {endpoint}: request error")
        return False
    if res.status_code != 200:
        print(f"FAIL {endpoint}: HTTP {res.status_code}")
        return False
    value = res.json().get(key)
    if expected is not None and value != expected:
        print(f"FAIL {endpoint}: {key}={value}")
        return False
    if expected is None and not value:
        print(f"FAIL {endpoint}: {key} vazio")
        return False
    print(f"OK   {endpoint}: {key} ok")
    return True


BASE_URL = os.getenv("AUDIT_API_BASE_URL", "http://127.0.0.1:8000/api")

ok = True
ok = check("/health", "status", "ok") and ok
ok = check("/catalog/response-types", "items") and ok

sys.exit(0 if ok else 1)
