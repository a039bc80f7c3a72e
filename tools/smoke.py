#!/usr/bin/env python3
"""
BITABLE LEDGER Smoke Test

Acceptance checks against a running credential proxy.
Must pass before production deployment.

Usage: python tools/smoke.py [proxy_url]
"""

import logging
import os
import sys

import requests

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Test configuration
TEST_TIMEOUT = 30
PROXY_URL = os.getenv("FEISHU_PROXY_URL", "http://127.0.0.1:8080")

# Test results tracking
test_results: list[tuple[str, bool, str]] = []


def log_test_result(test_name: str, success: bool, message: str = ""):
    """Log and track test results."""
    status = "✅ PASS" if success else "❌ FAIL"
    logger.info(f"{status}: {test_name} - {message}")
    test_results.append((test_name, success, message))


def check_health(base_url: str) -> bool:
    try:
        r = requests.get(f"{base_url}/health", timeout=TEST_TIMEOUT)
        ok = r.status_code == 200 and r.json().get("status") == "ok"
        log_test_result("Health", ok, f"HTTP {r.status_code}")
        return ok
    except Exception as e:
        log_test_result("Health", False, str(e))
        return False


def check_config_endpoint(base_url: str) -> bool:
    """Config check must answer {code: 0, data: {configured: bool}} and leak nothing else."""
    try:
        r = requests.get(f"{base_url}/api/feishu-config", timeout=TEST_TIMEOUT)
        body = r.json()
        data = body.get("data") or {}
        ok = r.status_code == 200 and body.get("code") == 0 and set(data) == {"configured"}
        log_test_result("Config Check", ok, f"configured={data.get('configured')}")
        if ok and not data.get("configured"):
            logger.warning("Proxy secrets are not configured; proxied calls will fail")
        return ok
    except Exception as e:
        log_test_result("Config Check", False, str(e))
        return False


def check_cors_preflight(base_url: str) -> bool:
    try:
        r = requests.options(f"{base_url}/api/feishu/open-apis/bitable/v1/apps", timeout=TEST_TIMEOUT)
        ok = r.status_code == 200 and r.headers.get("Access-Control-Allow-Origin") == "*"
        log_test_result("CORS Preflight", ok, f"HTTP {r.status_code}")
        return ok
    except Exception as e:
        log_test_result("CORS Preflight", False, str(e))
        return False


def check_missing_path(base_url: str) -> bool:
    try:
        r = requests.get(f"{base_url}/api/feishu", timeout=TEST_TIMEOUT)
        ok = r.status_code == 400 and r.json().get("code") == -1
        log_test_result("Missing Path", ok, f"HTTP {r.status_code}")
        return ok
    except Exception as e:
        log_test_result("Missing Path", False, str(e))
        return False


def main() -> int:
    base_url = (sys.argv[1] if len(sys.argv) > 1 else PROXY_URL).rstrip("/")
    logger.info(f"🔍 Smoke testing {base_url}")

    check_health(base_url)
    check_config_endpoint(base_url)
    check_cors_preflight(base_url)
    check_missing_path(base_url)

    failed = [name for name, ok, _ in test_results if not ok]
    if failed:
        logger.error(f"❌ {len(failed)} check(s) failed: {', '.join(failed)}")
        return 1
    logger.info(f"✅ All {len(test_results)} checks passed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
