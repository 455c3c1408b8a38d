# ruff: noqa: E501
import textwrap
from datetime import date
from decimal import Decimal

from statement_extraction.learned import LearnedDescriptionStore
from statement_extraction.merchants import MerchantTables
from statement_extraction.models import CategoryPattern
from statement_extraction.statement import StatementParser, parse_statement


def _dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n").rstrip()


def test_csv_scenario_keeps_commas_in_description() -> None:
    text = "Date, Amount, Balance, Description\n2024/01/15,-45.00,1000.00,Starbucks Sandton, ref 123"
    result = parse_statement(text)
    assert result.strategy == "csv"
    [tx] = result.transactions
    assert tx.amount == Decimal("45.00")
    assert tx.is_income is False
    assert tx.balance == Decimal("1000.00")
    assert "Starbucks Sandton, ref 123" in tx.description
    assert tx.date == date(2024, 1, 15)


def test_standard_scenario_resolves_dictionary_merchant() -> None:
    result = parse_statement("2024/03/02  R450.00 Shell Garage Sandton")
    assert result.strategy == "standard"
    [tx] = result.transactions
    assert tx.date.isoformat() == "2024-03-02"
    assert tx.amount == Decimal("450.00")
    assert tx.store == "Shell"
    assert tx.category == "Transport"
    assert tx.id.startswith("imported_")
    assert tx.source == "statement"


def test_no_recognizable_lines_returns_empty_list() -> None:
    text = _dedent(
        """
        Dear customer,
        Thank you for banking with us.
        Please contact us for assistance.
        """
    )
    result = parse_statement(text)
    assert result.transactions == []
    assert result.strategy is None


def test_empty_input_returns_empty_result() -> None:
    result = parse_statement("   \n\n  ")
    assert result.transactions == []
    assert result.account_info.bank_name is None


def test_account_info_attached_to_every_transaction() -> None:
    text = _dedent(
        """
        FNB Statement
        ACCOUNT:, 62812345678, [Gold Cheque]
        Name:, MR J SMITH
        Balance:, -3500.00, 2184.00
        Date, Amount, Balance, Description
        2024/01/15,-45.00,1000.00,Starbucks Sandton
        2024/01/16,-300.00,700.00,Engen Rivonia
        """
    )
    result = parse_statement(text)
    info = result.account_info
    assert info.balance == Decimal("-3500.00")
    assert info.available_balance == Decimal("2184.00")
    assert info.account_number == "62812345678"
    assert info.bank_name == "FNB"
    assert len(result.transactions) == 2
    for tx in result.transactions:
        assert tx.account_number == "62812345678"
        assert tx.account_name == "MR J SMITH"
        assert tx.account_type == "Gold Cheque"
        assert tx.bank_name == "FNB"
    assert result.transactions[1].store == "Engen"
    assert result.transactions[1].category == "Transport"


def test_caller_bank_name_used_when_text_has_none() -> None:
    result = parse_statement("2024/03/02 R450.00 Shell Garage Sandton", bank_name="Capitec")
    assert result.transactions[0].bank_name == "Capitec"


def test_amounts_are_always_positive_with_direction_flag() -> None:
    text = _dedent(
        """
        Date, Amount, Balance, Description
        2024/01/15,-45.00,1000.00,Coffee
        2024/01/16,1500.00,2500.00,Salary NETCASH
        """
    )
    result = parse_statement(text)
    assert all(tx.amount > 0 for tx in result.transactions)
    assert [tx.is_income for tx in result.transactions] == [False, True]
    assert result.transactions[1].category == "Salary"


def test_falls_back_to_table_layout() -> None:
    text = _dedent(
        """
        Transactions
        2024/01/15    Card purchase    Checkers Hyper    -899.99
        """
    )
    result = parse_statement(text)
    # The standard strategy reads this line too; either way one row results.
    [tx] = result.transactions
    assert tx.amount == Decimal("899.99")
    assert tx.store == "Checkers"


def test_fixed_tables_can_be_injected() -> None:
    tables = MerchantTables.build(
        {"Coffee": {"Bean There": "Coffee"}},
        {"Coffee": CategoryPattern(keywords=["espresso"])},
        origin="test",
    )
    parser = StatementParser(tables, id_factory=lambda: "fixed")
    result = parser.parse(
        _dedent(
            """
            2024/02/01 R38.00 BEAN THERE BRAAMFONTEIN
            2024/02/02 R30.00 Corner espresso bar
            2024/02/03 R45.00 Shell Garage Sandton
            """
        )
    )
    assert [(t.store, t.category) for t in result.transactions] == [
        ("Bean There", "Coffee"),
        ("Corner espresso", "Coffee"),
        ("Shell Garage", "Other"),
    ]
    assert {t.id for t in result.transactions} == {"fixed"}


def test_learned_category_refines_other_and_manual_wins() -> None:
    learned = LearnedDescriptionStore()
    learned.learn_description("Corner Cafe", "Coffee", "Food", Decimal("30"))
    learned.create_manual_store("Shell", "Petrol", "Car")

    tables = MerchantTables.build(
        {"Transport": {"Shell": "Transport"}}, {}, origin="test"
    )
    parser = StatementParser(tables, learned=learned)
    result = parser.parse(
        _dedent(
            """
            2024/02/01 R30.00 Corner Cafe Parkhurst
            2024/02/02 R450.00 Shell Garage Sandton
            """
        )
    )
    cafe, shell = result.transactions
    assert cafe.store == "Corner Cafe"
    assert cafe.category == "Food"
    assert shell.category == "Car"
    # Read-only: parsing does not bump usage counts.
    assert learned.get("Corner Cafe").count == 1
