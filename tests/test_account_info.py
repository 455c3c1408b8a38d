from decimal import Decimal

from statement_extraction.account_info import detect_bank, extract_account_info


def test_balance_and_available_balance_from_comma_separated_line() -> None:
    info = extract_account_info(["Balance:, -3500.00, 2184.00"])
    assert info.balance == Decimal("-3500.00")
    assert info.available_balance == Decimal("2184.00")


def test_single_balance_sets_only_balance() -> None:
    info = extract_account_info(["Balance: R1,250.50"])
    assert info.balance == Decimal("1250.50")
    assert info.available_balance is None


def test_available_balance_line_does_not_set_balance() -> None:
    info = extract_account_info(["Available Balance: R2,184.00", "Balance: 100.00"])
    assert info.available_balance == Decimal("2184.00")
    assert info.balance == Decimal("100.00")


def test_account_number_and_type() -> None:
    info = extract_account_info(["ACCOUNT:, 62812345678, [Gold Cheque Account]"])
    assert info.account_number == "62812345678"
    assert info.account_type == "Gold Cheque Account"


def test_account_number_without_comma() -> None:
    info = extract_account_info(["Account Number: 1234 5678 [Savings]"])
    assert info.account_number == "1234 5678"
    assert info.account_type == "Savings"


def test_first_match_per_field_wins() -> None:
    info = extract_account_info(
        [
            "Account: 111",
            "Name:, MR J SMITH",
            "Account: 222",
            "Name: SOMEONE ELSE",
            "Balance: 10.00",
            "Balance: 20.00",
        ]
    )
    assert info.account_number == "111"
    assert info.account_name == "MR J SMITH"
    assert info.balance == Decimal("10.00")


def test_account_name_line_is_not_an_account_number() -> None:
    info = extract_account_info(["Account Name: Jane Doe"])
    assert info.account_number is None
    assert info.account_name == "Jane Doe"


def test_bank_detection_uses_fixed_order() -> None:
    assert detect_bank("First National Bank statement") == "FNB"
    assert detect_bank("Capitec Bank Limited") == "Capitec"
    assert detect_bank("nothing here") is None
    info = extract_account_info(["Welcome to Nedbank", "Transfer from Capitec"])
    assert info.bank_name == "Nedbank"


def test_missing_fields_are_none_and_nothing_raises() -> None:
    info = extract_account_info(["random text", "", "Balance: not-a-number"])
    assert info.account_number is None
    assert info.balance is None
    assert info.bank_name is None
