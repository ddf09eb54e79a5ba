import json
import os

import pytest

from forma.core.observability.metrics import reset_metrics


@pytest.fixture(scope="session", autouse=True)
def _force_test_env(tmp_path_factory):
    # Keep a developer's forma.yaml out of the tests
    os.environ["FORMA_CONFIG_FILE"] = str(tmp_path_factory.mktemp("cfg") / "absent.yaml")


@pytest.fixture(autouse=True)
def _reset_counters():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture()
def styles_dir(tmp_path):
    """
    A styles directory with a small hierarchy:

      base.json     button base + nested variants
      brand.json    extends base
      legacy.yaml   flat variant shape, "components" table
    """
    d = tmp_path / "styles"
    d.mkdir()
    (d / "base.json").write_text(json.dumps({
        "elements": {
            "button": {
                "base": ["btn"],
                "variants": {
                    "variant": {"primary": ["btn-primary"], "secondary": ["btn-secondary"]},
                    "size": {"sm": ["btn-sm"], "lg": ["btn-lg"]},
                },
            }
        }
    }), encoding="utf-8")
    (d / "brand.json").write_text(json.dumps({
        "extends": "base",
        "elements": {"button": {"base": ["brand-btn"]}},
    }), encoding="utf-8")
    (d / "legacy.yaml").write_text(
        "components:\n"
        "  button:\n"
        "    base: legacy-btn\n"
        "    variants:\n"
        "      primary: [legacy-primary]\n",
        encoding="utf-8",
    )
    return d
