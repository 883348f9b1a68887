"""
CreditKit Test Configuration and Shared Fixtures

Provides pytest fixtures for the built-in catalog, parameter sets for the
refrigerant and thermal comfort credits, and document sets used across the
CreditKit test suite.

Example usage:
    def test_low_gwp_refrigerant(catalog, eacr6_option1_pass):
        result = evaluate_credit(catalog.get("EACr6"), eacr6_option1_pass)
        assert result.awarded
"""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict

import pytest

from core.catalog import default_catalog


@pytest.fixture(autouse=True)
def clean_creditkit_env(monkeypatch):
    """
    Remove CREDITKIT_* variables so every test starts from the defaults.
    """
    for name in [
        "CREDITKIT_UNIT_SYSTEM",
        "CREDITKIT_RESOLUTION_STRATEGY",
        "CREDITKIT_DEFAULT_DOCUMENT_PRIORITY",
        "CREDITKIT_CATALOG_PATH",
        "CREDITKIT_LOG_LEVEL",
        "CREDITKIT_LOG_FORMAT",
    ]:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_dir():
    """
    Provide a temporary directory that is cleaned up after test.

    Returns:
        Path: Temporary directory path
    """
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def catalog():
    """Built-in credit catalog."""
    return default_catalog()


@pytest.fixture
def write_json(temp_dir):
    """
    Write a JSON file into the temporary directory.

    Returns:
        Callable taking (name, data) and returning the file path
    """
    def _write(name: str, data: Any) -> Path:
        path = temp_dir / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path
    return _write


# ---------------------------------------------------------------------------
# EACr6 Enhanced Refrigerant Management
# ---------------------------------------------------------------------------

@pytest.fixture
def eacr6_option1_pass() -> Dict[str, Any]:
    """Low-impact refrigerant (R-1234ze) that passes option 1."""
    return {
        'Refrigerant Used': 'R-1234ze(E)',
        'ODP': 0,
        'GWP': 4,
        'Confirmation Statement': 'Yes - All equipment uses low-GWP refrigerants',
        'Equipment Type': 'Heat Pump',
        'Equipment Quantity': 2,
        'Equipment Cooling Capacity': 50,
    }


@pytest.fixture
def eacr6_option2_pass() -> Dict[str, Any]:
    """Low-GWP refrigerant without a confirmation statement, passing option 2."""
    return {
        'Refrigerant Used': 'R-1234ze(E)',
        'ODP': 0,
        'GWP': 4,
        'Equipment Type': 'Chiller',
        'Refrigerant charge': 45,
        'Leakage Rate': '7',
        'Equipment Life': 20,
        'Equipment Cooling Capacity': 120,
        'Equipment Quantity': 3,
    }


@pytest.fixture
def eacr6_fail() -> Dict[str, Any]:
    """High-impact refrigerant (R-410A) that fails both options."""
    return {
        'Refrigerant Used': 'R-410A',
        'ODP': 0,
        'GWP': 2088,
        'Equipment Type': 'Split System',
        'Refrigerant charge': 8,
        'Leakage Rate': 15,
        'Equipment Life': 15,
        'Equipment Cooling Capacity': 25,
        'Equipment Quantity': 10,
    }


# ---------------------------------------------------------------------------
# IEQCr5 Thermal Comfort
# ---------------------------------------------------------------------------

@pytest.fixture
def ieqcr5_pass() -> Dict[str, Any]:
    """Compliant thermal comfort design."""
    return {
        'Compliance Path': 'ASHRAE 55-2017',
        'PMV': 0.3,
        'PPD': 7,
        'Operative Temperature Range': '68-76°F',
        'Relative Humidity Range': '30-60%',
        'Air Speed': '0.15 m/s',
        'Clothing Insulation': '0.5 clo',
        'Metabolic Rate': '1.0 met',
        'Weather Data Source': 'TMY3',
        'Total Individual Spaces': 150,
        'Controlled Spaces': 142,
        'Group Controls': 'Yes - Multi-zone VAV system',
        'Thermostat Locations': 'Per architectural drawings',
    }


@pytest.fixture
def ieqcr5_fail_pmv(ieqcr5_pass) -> Dict[str, Any]:
    """PMV, PPD and space control all out of bounds."""
    params = dict(ieqcr5_pass)
    params.update({
        'PMV': 0.8,
        'PPD': 18,
        'Total Individual Spaces': 100,
        'Controlled Spaces': 45,
    })
    return params


@pytest.fixture
def ieqcr5_fail_spaces(ieqcr5_pass) -> Dict[str, Any]:
    """Only 42.5% of individual spaces controlled."""
    params = dict(ieqcr5_pass)
    params.update({
        'PMV': 0.2,
        'PPD': 6,
        'Total Individual Spaces': 200,
        'Controlled Spaces': 85,
    })
    return params


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

def credit_entry(values: Dict[str, Any]) -> Dict[str, Any]:
    """Credit entry declaring every key of ``values``."""
    return {"declaredParameters": list(values.keys()), "values": dict(values)}


@pytest.fixture
def gwp_conflict_documents() -> Dict[str, Any]:
    """
    Three documents: Doc A and Doc B disagree on GWP, Doc C adds ODP.
    """
    return {
        "Doc A": {"EACr6": credit_entry({"GWP": 675, "Refrigerant Used": "R-32"})},
        "Doc B": {"EACr6": credit_entry({"GWP": 700})},
        "Doc C": {"EACr6": credit_entry({"ODP": 0})},
    }


@pytest.fixture
def project_documents() -> Dict[str, Any]:
    """
    Realistic document set for EACr6 drawn from a mechanical submittal,
    an equipment schedule and an email thread.
    """
    return {
        "Mechanical Submittal": {
            "EACr6": credit_entry({
                "Refrigerant Used": "R-1234ze(E)",
                "GWP": 6,
                "ODP": 0,
            }),
            "IEQCr5": credit_entry({"Compliance Path": "ASHRAE 55-2017"}),
        },
        "Equipment Schedule M-601": {
            "EACr6": credit_entry({
                "GWP": 4,
                "Equipment Type": "Chiller",
            }),
        },
        "Email Thread": {
            "EACr6": credit_entry({
                "GWP": 7,
                "Confirmation Statement": "Yes - all equipment uses low-GWP refrigerants",
            }),
        },
    }
