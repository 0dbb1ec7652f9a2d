import os
import re
from pathlib import Path

from dotenv import dotenv_values

PACKAGE_DIR = Path(__file__).resolve().parents[1] / "flowsmith"

# Read at runtime by SecretResolver rather than declared on Settings.
RESOLVER_VARS = ["ANTHROPIC_API_KEY"]

REQUIRED_IN_PRODUCTION = ["DATABASE_URL", "N8N_API_URL", "N8N_API_KEY"]


def find_env_vars():
    """Find all environment variables referenced in code."""
    env_vars = set(RESOLVER_VARS)
    for py_file in PACKAGE_DIR.rglob("*.py"):
        content = py_file.read_text(encoding="utf-8", errors="ignore")
        env_vars.update(re.findall(r'alias=["\']([A-Z0-9_]+)["\']', content))
        env_vars.update(re.findall(r'os\.getenv\(["\']([A-Z0-9_]+)["\']', content))
        env_vars.update(re.findall(r'os\.environ\[\s*["\']([A-Z0-9_]+)["\']\s*\]', content))
    return sorted(env_vars)


def verify_environment(env_file=".env"):
    configured = {k: v for k, v in dotenv_values(env_file).items() if v}
    configured.update({k: v for k, v in os.environ.items() if v})

    code_vars = set(find_env_vars())
    missing_required = [v for v in REQUIRED_IN_PRODUCTION if v not in configured]
    unset = sorted(v for v in code_vars if v not in configured)

    print("=== ENV VAR VERIFICATION ===")
    print(f"Code references: {len(code_vars)} unique vars")
    print("")
    if missing_required:
        print(f"MISSING REQUIRED ({len(missing_required)}):")
        for v in missing_required:
            print(f"  - {v}")
    else:
        print("All required vars are set.")
    print("")
    if unset:
        print(f"USING DEFAULTS ({len(unset)}):")
        for v in unset:
            print(f"  - {v}")
    return not missing_required


if __name__ == "__main__":
    raise SystemExit(0 if verify_environment() else 1)
