import base64
import json

import pytest
import yaml

from buildworker.bootstrap.caddy import build_caddy_config, render_caddy_json
from buildworker.bootstrap.cloudinit import (
    CADDY_CONFIG_PATH,
    BootstrapInputs,
    document_fingerprint,
    encode_custom_data,
    registry_login_script,
    synthesize,
)
from buildworker.bootstrap.secrets import SecretBundle
from buildworker.errors import ConfigError

HASH = "$2a$14$alkJaDk17ojdhBWhAZdBRukqJVCT6zRXHW9GFyfFyx5Zze2RV3B/q"
IMAGE = "ghcr.io/acme/caddy-builder:1.2"


def _inputs(domain="1.2.3.4.sslip.io", image=IMAGE, user=None, password=None, go=None):
    return BootstrapInputs.for_worker(
        domain=domain,
        container_image=image,
        secrets=SecretBundle(HASH, user, password),
        go_version=go,
    )


def _runcmd(document):
    return yaml.safe_load(document)["runcmd"]


def test_document_is_cloud_config_yaml():
    doc = synthesize(_inputs())
    assert doc.startswith("#cloud-config\n")

    data = yaml.safe_load(doc)
    assert list(data) == ["package_update", "package_upgrade", "packages", "write_files", "runcmd"]
    assert data["package_update"] is True
    assert data["package_upgrade"] is True
    assert data["packages"] == ["apt-transport-https", "ca-certificates", "curl", "gnupg", "lsb-release"]


def test_embedded_caddy_config_round_trips():
    inputs = _inputs()
    data = yaml.safe_load(synthesize(inputs))

    (wf,) = data["write_files"]
    assert wf["path"] == CADDY_CONFIG_PATH
    assert wf["permissions"] == "0644"
    assert wf["content"] == render_caddy_json(inputs.caddy_config) + "\n"
    assert json.loads(wf["content"])["apps"]["http"]["servers"]["srv0"]["routes"][0]["match"] == [
        {"host": ["1.2.3.4.sslip.io"]}
    ]


def test_embedded_config_is_a_literal_block():
    doc = synthesize(_inputs())
    assert "content: |\n" in doc
    assert "'0644'" in doc


def test_runcmd_order():
    cmds = _runcmd(synthesize(_inputs()))

    assert cmds[0] == "mkdir -p /data/caddy"
    assert cmds[1].startswith("curl -fsSL https://download.docker.com/linux/ubuntu/gpg")
    assert "systemctl enable docker" in cmds
    assert "systemctl start docker" in cmds

    login = next(i for i, c in enumerate(cmds) if "docker login" in c)
    pull = cmds.index(f"docker pull {IMAGE}")
    run = next(i for i, c in enumerate(cmds) if c.startswith("docker run"))
    assert cmds.index("systemctl start docker") < login < pull < run
    assert run == len(cmds) - 1


def test_docker_run_command():
    run = _runcmd(synthesize(_inputs()))[-1]
    assert run == (
        "docker run -d --restart=always --name caddy -p 80:80 -p 443:443 "
        "-v /etc/caddy/config.json:/etc/caddy/config.json:ro -v /data/caddy:/data "
        f"{IMAGE} caddy run --config /etc/caddy/config.json"
    )


def test_synthesis_is_deterministic():
    docs = {synthesize(_inputs(user="bot", password="tok")) for _ in range(5)}
    assert len(docs) == 1


def test_login_present_when_both_credentials_set():
    script = next(c for c in _runcmd(synthesize(_inputs(user="bot", password="tok"))) if "docker login" in c)
    assert script.startswith("if [ -n bot ] && [ -n tok ]; then\n")
    assert "printf '%s\\n' tok | docker login ghcr.io -u bot --password-stdin" in script
    assert script.rstrip().endswith("fi")


@pytest.mark.parametrize("user, password", [(None, None), ("", ""), ("bot", None), (None, "tok"), ("bot", "")])
def test_login_inert_when_a_credential_is_missing(user, password):
    script = next(c for c in _runcmd(synthesize(_inputs(user=user, password=password))) if "docker login" in c)
    # one of the -n tests sees an empty string, so the branch never runs
    assert "[ -n '' ]" in script


def test_login_without_registry_host_targets_default_registry():
    script = registry_login_script("", "bot", "tok")
    assert "| docker login -u bot --password-stdin" in script


def test_secret_values_are_shell_quoted():
    script = registry_login_script("ghcr.io", "bot", "p a$s'w")
    assert "'p a$s'\"'\"'w'" in script


def test_go_toolchain_is_optional():
    without = synthesize(_inputs())
    assert "go.dev/dl" not in without

    cmds = _runcmd(synthesize(_inputs(go="1.24.1")))
    assert "curl -fsSL https://go.dev/dl/go1.24.1.linux-amd64.tar.gz | tar -C /usr/local -xz" in cmds
    assert "-v /usr/local/go:/usr/local/go" in cmds[-1]
    assert '-e PATH="/usr/local/go/bin:' in cmds[-1]


@pytest.mark.parametrize(
    "changed",
    [
        dict(domain="5.6.7.8.sslip.io"),
        dict(image="ghcr.io/acme/caddy-builder:1.3"),
        dict(image="docker.io/acme/caddy-builder:1.2"),
        dict(user="bot", password="tok"),
    ],
)
def test_any_input_change_changes_the_document(changed):
    base = synthesize(_inputs())
    assert document_fingerprint(synthesize(_inputs(**changed))) != document_fingerprint(base)


def test_mismatched_caddy_domain_rejected():
    with pytest.raises(ValueError):
        BootstrapInputs(
            domain="a.example.com",
            container_image=IMAGE,
            registry_host="ghcr.io",
            caddy_config=build_caddy_config("b.example.com", HASH),
        )


def test_missing_image_rejected():
    with pytest.raises(ConfigError):
        _inputs(image="")


def test_custom_data_is_base64_of_document():
    doc = synthesize(_inputs())
    assert base64.b64decode(encode_custom_data(doc)).decode() == doc


def test_domain_is_stripped_once_for_config_and_inputs():
    inputs = _inputs(domain="  1.2.3.4.sslip.io \n")
    assert inputs.domain == "1.2.3.4.sslip.io"
    assert inputs.caddy_config.domain == "1.2.3.4.sslip.io"
