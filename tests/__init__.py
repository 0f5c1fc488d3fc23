"""
RewardWatch Test Suite
======================

Test Organization
-----------------
- tests/unit/          : Fast tests with fakes and mocks (no network, no database)
- tests/integration/   : SQLite file database and a local aiohttp stub upstream
- tests/stubs/         : Upstream JSON payloads served by the stub server

Run only the fast suite with `pytest -m "not integration"`.
"""
