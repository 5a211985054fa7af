from pathlib import Path
import textwrap

import pytest

from keto_tokens.config.loader import _deep_merge, load_client_config, load_server_config
from keto_tokens.errors import ConfigInvalidError


def test_server_defaults():
    cfg = load_server_config()
    assert cfg.tag_name == "KubeletToken"
    assert cfg.token_namespace == "kube-system"
    assert cfg.token_ttl_seconds == 1800
    assert cfg.token_ttl.total_seconds() == 1800
    assert cfg.reconcile_interval_seconds == 10
    assert cfg.usages == ["authentication", "signing"]
    assert cfg.filters == {}
    assert (cfg.workers, cfg.queue_size) == (4, 10)


def test_client_defaults():
    cfg = load_client_config()
    assert cfg.master == "https://127.0.0.1:6443"
    assert cfg.kubeconfig == "kubeconfig-bootstrap"
    assert cfg.interval_seconds == 5
    assert cfg.timeout_seconds is None
    assert cfg.ca_path is None


def test_file_sections_and_env_expansion(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("POOL_ENV", "prod")
    f = tmp_path / "keto.yaml"
    f.write_text(textwrap.dedent("""
        server:
          tag_name: BootToken
          filters:
            Role: compute
            Env: ${POOL_ENV}
          token_ttl_seconds: 600
        client:
          interval_seconds: 2
          ca_path: /etc/kubernetes/ca.crt
    """))

    server = load_server_config(f)
    assert server.tag_name == "BootToken"
    assert server.filters == {"Role": "compute", "Env": "prod"}
    assert server.token_ttl_seconds == 600

    client = load_client_config(f)
    assert client.interval_seconds == 2
    assert client.ca_path == "/etc/kubernetes/ca.crt"


def test_overrides_win_unless_empty(tmp_path: Path):
    f = tmp_path / "keto.yaml"
    f.write_text("server:\n  tag_name: FromFile\n  token_namespace: tokens\n  filters:\n    Role: compute\n")

    cfg = load_server_config(f, {"tag_name": "FromFlag", "token_namespace": None, "filters": {}})
    assert cfg.tag_name == "FromFlag"
    assert cfg.token_namespace == "tokens"
    assert cfg.filters == {"Role": "compute"}


def test_deep_merge_nested():
    base = {"filters": {"Role": "compute"}, "workers": 4}
    _deep_merge(base, {"filters": {"Env": "dev"}, "workers": None})
    assert base == {"filters": {"Role": "compute", "Env": "dev"}, "workers": 4}


@pytest.mark.parametrize("bad", [
    {"tag_name": "  "},
    {"token_namespace": "   "},
    {"reconcile_interval_seconds": 0},
    {"token_ttl_seconds": -5},
    {"workers": 0},
    {"queue_size": -1},
])
def test_invalid_server_config(bad):
    with pytest.raises(ConfigInvalidError) as ei:
        load_server_config(overrides=bad)
    assert "invalid ServerConfig" in str(ei.value)


def test_non_mapping_file(tmp_path: Path):
    f = tmp_path / "list.yaml"
    f.write_text("- a\n- b\n")
    with pytest.raises(ConfigInvalidError):
        load_server_config(f)


def test_section_must_be_mapping(tmp_path: Path):
    f = tmp_path / "keto.yaml"
    f.write_text("server: just-a-string\n")
    with pytest.raises(ConfigInvalidError):
        load_server_config(f)
