from ebookbot.delivery import DeliverySigner, file_name


def test_file_name_normalizes_title():
    assert file_name("My Great Book") == "my-great-book.pdf"
    assert file_name("../etc/passwd") == "..etcpasswd.pdf"


def test_file_name_folds_accents():
    assert file_name("Élan") == "elan.pdf"
    assert file_name("Café Society") == "cafe-society.pdf"


def test_signed_reference_is_stable(delivery):
    first = delivery.reference("mybook", "cs_test_1")
    second = delivery.reference("mybook", "cs_test_1")

    assert first == second
    assert first.startswith("http://localhost:8000/files/mybook.pdf?token=")


def test_verify_accepts_own_token(delivery):
    token = delivery.reference("mybook", "cs_test_1").split("token=")[1]
    assert delivery.verify("mybook.pdf", token)


def test_verify_rejects_other_file_or_bad_token(delivery):
    token = delivery.reference("mybook", "cs_test_1").split("token=")[1]

    assert not delivery.verify("otherbook.pdf", token)
    assert not delivery.verify("mybook.pdf", None)
    assert not delivery.verify("mybook.pdf", "not-a-jwt")
    assert not DeliverySigner("http://localhost:8000", "other-secret").verify("mybook.pdf", token)


def test_unsigned_reference():
    signer = DeliverySigner("http://localhost:8000/", None)

    assert signer.reference("mybook", "cs_test_1") == "http://localhost:8000/files/mybook.pdf"
    assert signer.verify("mybook.pdf", None)
