from __future__ import annotations

from pathlib import Path

import pytest

from creditcoin_cli import cli
from creditcoin_cli import config as config_module
from creditcoin_cli.client import CallCompositionError, StorageItemError
from creditcoin_cli.model import TxStreamEndedError
from creditcoin_cli.rpc_client import RPCError

BOB = "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty"
BOB_HEX = "0x8eaf04151687736326c9fea17e25fc5287613693c912909cb226aa4794f26a48"


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
    monkeypatch.setattr(config_module, "_CONFIG_PATH_OVERRIDE", None)
    for name in (
        "CTC_ENDPOINT",
        "CTC_RPC_URL",
        "CTC_SURI",
        "CTC_SUDO_SURI",
        "CTC_SS58_FORMAT",
        "CTC_LEGACY_WEIGHTS",
        "CTC_RPC_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


class StubChainClient:
    instances: list["StubChainClient"] = []

    def __init__(self, config) -> None:
        self.config = config
        self.closed = False

    @classmethod
    def connect(cls, config):
        client = cls(config)
        cls.instances.append(client)
        return client

    def count_storage_items(self, module, name):
        if (module, name) != ("Creditcoin", "Authorities"):
            raise StorageItemError(f"Storage item {module}.{name} not found in runtime metadata")
        return 3

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def sent(monkeypatch: pytest.MonkeyPatch) -> list[tuple]:
    records: list[tuple] = []
    StubChainClient.instances = []
    monkeypatch.setattr(cli, "ChainClient", StubChainClient)
    monkeypatch.setattr(cli, "load_keypair", lambda suri, ss58_format: f"keypair:{suri}")
    monkeypatch.setattr(
        cli, "send_extrinsic", lambda client, call, signer: records.append((client, call, signer))
    )
    return records


def test_transfer_builds_scaled_amount_and_uses_signer(sent) -> None:
    cli.main(["--sudo-suri", "//Sudo", "send-extrinsic", "transfer", BOB, "2.5"])

    client, call, signer = sent[0]
    assert call.name == "Balances.transfer"
    assert call.params["value"] == 2_500_000_000_000_000_000
    assert call.params["dest"] == {"Id": BOB_HEX}
    assert signer == "keypair://Alice"
    assert client.closed


def test_privileged_calls_use_sudo_signer(sent) -> None:
    cli.main(["--sudo-suri", "//Sudo", "send-extrinsic", "add-authority", BOB])

    _, call, signer = sent[0]
    assert call.describe() == "Sudo.sudo(Creditcoin.add_authority)"
    assert signer == "keypair://Sudo"


def test_set_code_announces_wait_and_honours_legacy_weights(
    sent, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys
) -> None:
    wasm = tmp_path / "runtime.wasm"
    wasm.write_bytes(b"\x00asm")
    monkeypatch.setenv("CTC_LEGACY_WEIGHTS", "1")

    cli.main(["send-extrinsic", "set-code", str(wasm)])

    _, call, _ = sent[0]
    assert call.params["weight"] == 1
    assert call.params["call"].params["code"] == "0x0061736d"
    assert "Waiting for transaction to be included in a block..." in capsys.readouterr().out


def test_set_code_missing_file_fails_before_connecting(sent, tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["send-extrinsic", "set-code", str(tmp_path / "missing.wasm")])

    assert excinfo.value.code == 1
    assert "error:" in capsys.readouterr().err
    assert StubChainClient.instances == []
    assert sent == []


def test_invalid_address_is_rejected_by_parser(sent, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["send-extrinsic", "set-sudo-key", BOB[:-1] + "x"])

    assert excinfo.value.code == 2
    assert "is not a valid SS58 Address" in capsys.readouterr().err
    assert sent == []


@pytest.mark.parametrize("amount", ["-1", "nan", "inf", "abc"])
def test_invalid_amounts_are_rejected_by_parser(sent, amount: str) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["send-extrinsic", "set-balance", BOB, amount])

    assert excinfo.value.code == 2


def test_stream_end_is_reported_as_error(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.setattr(cli, "ChainClient", StubChainClient)
    monkeypatch.setattr(cli, "load_keypair", lambda suri, ss58_format: suri)

    def fail(client, call, signer):
        raise TxStreamEndedError("tx status subscription ended")

    monkeypatch.setattr(cli, "send_extrinsic", fail)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["send-extrinsic", "switch-to-pos"])

    assert excinfo.value.code == 1
    assert "error: tx status subscription ended" in capsys.readouterr().err


class StubRPC:
    def __init__(self, config, *, head="0xhead", code=b"\x00asm", error=None) -> None:
        self.config = config
        self.head = head
        self.code = code
        self.error = error

    def chain_get_block_hash(self):
        if self.error is not None:
            raise self.error
        return self.head

    def state_get_runtime_version(self):
        return {"specName": "creditcoin-node", "specVersion": 230}

    def get_code(self):
        return self.code


def _use_rpc(monkeypatch: pytest.MonkeyPatch, **kwargs) -> None:
    monkeypatch.setattr(cli, "ChainRPCClient", lambda config: StubRPC(config, **kwargs))


def test_get_head(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    _use_rpc(monkeypatch)

    cli.main(["get-head"])
    assert capsys.readouterr().out == "Chain head: 0xhead\n"

    cli.main(["get-head", "--quiet"])
    assert capsys.readouterr().out == "0xhead\n"


def test_get_head_without_head_is_an_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_rpc(monkeypatch, head=None)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["get-head"])

    assert excinfo.value.code == 1


def test_get_version_prints_json(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    _use_rpc(monkeypatch)

    cli.main(["get-version"])

    out = capsys.readouterr().out
    assert '"specName": "creditcoin-node"' in out
    assert '"specVersion": 230' in out


def test_count_storage_items(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    StubChainClient.instances = []
    monkeypatch.setattr(cli, "ChainClient", StubChainClient)

    cli.main(["count-storage-items", "Creditcoin", "Authorities"])

    assert capsys.readouterr().out == "3\n"
    assert StubChainClient.instances[0].closed


def test_count_unknown_storage_item_is_an_error(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    StubChainClient.instances = []
    monkeypatch.setattr(cli, "ChainClient", StubChainClient)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["count-storage-items", "NoSuchPallet", "Typo"])

    assert excinfo.value.code == 1
    assert "error: Storage item NoSuchPallet.Typo not found" in capsys.readouterr().err
    assert StubChainClient.instances[0].closed


def test_call_missing_from_runtime_is_reported(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.setattr(cli, "ChainClient", StubChainClient)
    monkeypatch.setattr(cli, "load_keypair", lambda suri, ss58_format: suri)

    def reject(client, call, signer):
        raise CallCompositionError("Runtime at ws://127.0.0.1:9944 rejected PosSwitch.switch_to_pos")

    monkeypatch.setattr(cli, "send_extrinsic", reject)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["send-extrinsic", "switch-to-pos"])

    assert excinfo.value.code == 1
    assert "error: Runtime at ws://127.0.0.1:9944 rejected PosSwitch" in capsys.readouterr().err


def test_get_code_writes_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys) -> None:
    _use_rpc(monkeypatch)
    output = tmp_path / "code.wasm"

    cli.main(["get-code", str(output)])

    assert output.read_bytes() == b"\x00asm"
    assert capsys.readouterr().out == f"Writing code to {output}\n"


def test_get_code_without_code(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys) -> None:
    _use_rpc(monkeypatch, code=None)
    output = tmp_path / "code.wasm"

    cli.main(["get-code", str(output)])

    assert not output.exists()
    assert capsys.readouterr().out == "No code found\n"


def test_rpc_errors_include_hint(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    _use_rpc(monkeypatch, error=RPCError(-32601, "Method not found"))

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["get-head"])

    err = capsys.readouterr().err
    assert excinfo.value.code == 1
    assert "error: RPC error -32601: Method not found" in err
    assert "Hint:" in err


def test_endpoint_flag_feeds_rpc_config(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    seen = []

    def factory(config):
        seen.append(config)
        return StubRPC(config)

    monkeypatch.setattr(cli, "ChainRPCClient", factory)

    cli.main(["-e", "wss://rpc.example:443", "get-head", "-q"])

    assert seen[0].http_url == "https://rpc.example:443"
