from packages.ingestion_engine.import_transactions import generate_fingerprint
from packages.ingestion_engine.models import Transaction


def test_generate_fingerprint_consistency():
    """
    Test that the same transaction data always generates the same fingerprint.
    SHA256({ISO_Date}|{Amount_Float}|{Merchant_Normalized})
    """
    fp1 = generate_fingerprint("2026-02-12", -150.00, "Starbucks")
    fp2 = generate_fingerprint("2026-02-12", -150.00, "Starbucks")

    assert fp1 == fp2
    assert isinstance(fp1, str)
    assert len(fp1) == 64  # SHA256 hex digest length


def test_generate_fingerprint_normalization():
    """
    Minor variations in merchant case or whitespace don't affect the fingerprint,
    and neither does an int vs float amount.
    """
    fp1 = generate_fingerprint("2026-02-12", -150, "Starbucks ")
    fp2 = generate_fingerprint("2026-02-12", -150.0, "STARBUCKS")

    assert fp1 == fp2


def test_generate_fingerprint_differentiation():
    fp1 = generate_fingerprint("2026-02-12", -150.00, "Starbucks")
    fp2 = generate_fingerprint("2026-02-13", -150.00, "Starbucks")  # next day
    fp3 = generate_fingerprint("2026-02-12", -150.01, "Starbucks")  # 1 cent different
    fp4 = generate_fingerprint("2026-02-12", -150.00, "Costa Coffee")

    assert len({fp1, fp2, fp3, fp4}) == 4


def test_transaction_fingerprint_uses_canonical_merchant():
    a = Transaction("2026-02-12", -3.20, "TESCO STORES", "Tesco", original_description="x")
    b = Transaction("2026-02-12", -3.20, "TESCO EXPRESS 99", "Tesco", original_description="y")

    assert a.id != b.id
    assert a.fingerprint == b.fingerprint
    assert a.fingerprint == generate_fingerprint("2026-02-12", -3.20, "Tesco")
