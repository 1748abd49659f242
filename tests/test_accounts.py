import pytest

from creditcoin_cli.accounts import AccountId, InvalidAddressError

ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
ALICE_PUBLIC_KEY = "d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d"


def test_ss58_round_trip() -> None:
    account = AccountId.from_ss58(ALICE)

    assert account.public_key.hex() == ALICE_PUBLIC_KEY
    assert account.to_ss58() == ALICE
    assert AccountId.from_ss58(account.to_ss58()) == account


def test_public_key_round_trip() -> None:
    account = AccountId(bytes.fromhex(ALICE_PUBLIC_KEY))

    assert str(account) == ALICE
    assert account.hex == "0x" + ALICE_PUBLIC_KEY
    assert account.multi_address() == {"Id": "0x" + ALICE_PUBLIC_KEY}


@pytest.mark.parametrize(
    "address",
    [
        ALICE[:-1] + "Z",
        "not-an-address",
        "",
    ],
)
def test_malformed_addresses_are_rejected(address: str) -> None:
    with pytest.raises(InvalidAddressError) as excinfo:
        AccountId.from_ss58(address)

    assert "is not a valid SS58 Address" in str(excinfo.value)


def test_account_id_requires_32_bytes() -> None:
    with pytest.raises(InvalidAddressError):
        AccountId(b"\x01" * 20)
