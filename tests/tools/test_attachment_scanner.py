from phish_email_analyzer.tools.attachment_scanner import scan_attachments, scan_single_attachment


def test_double_extension_executable_invoice_is_high():
    out = scan_single_attachment("invoice.pdf.exe", "application/x-msdownload", 1024)
    assert out["riskLevel"] == "high"
    assert "dangerous_extension:exe" in out["features"]
    assert "double_extension" in out["features"]
    assert "enticing_filename:invoice" in out["features"]


def test_ordinary_document_is_low():
    out = scan_single_attachment("report.pdf", "application/pdf", 2048)
    assert out["riskLevel"] == "low"
    assert out["features"] == []


def test_compound_archive_and_dotted_names_are_not_double_extensions():
    assert scan_single_attachment("backup.tar.gz", "application/gzip", 5000)["features"] == []
    assert scan_single_attachment("report v1.2 final.pdf", "application/pdf", 10)["features"] == []


def test_single_flags_are_medium():
    assert scan_single_attachment("notes.docm", "", 100)["features"] == ["macro_enabled_extension:docm"]
    out = scan_single_attachment("photo.jpg", "application/pdf", 100)
    assert out["features"] == ["mime_type_mismatch"]
    assert out["riskLevel"] == "medium"


def test_size_limits():
    assert scan_single_attachment("empty.txt", "text/plain", 0)["features"] == ["empty_file"]
    big = scan_single_attachment("video.png", "image/png", 11 * 1024 * 1024)
    assert big["features"] == ["oversized_file"]


def test_batch_accepts_camel_and_snake_keys():
    out = scan_attachments(
        [
            {"filename": "report.pdf", "mimeType": "application/pdf", "size": 10},
            {"filename": "photo.jpg", "mime_type": "text/html", "size": "20"},
        ]
    )
    assert out["riskLevel"] == "medium"
    assert out["suspiciousFeatures"] == ["mime_type_mismatch (photo.jpg)"]
    assert scan_attachments([])["riskLevel"] == "low"


def test_enticement_keywords_match_whole_tokens():
    assert scan_single_attachment("border.png", "image/png", 2048)["features"] == []
    assert scan_single_attachment("recorder.mp3", "audio/mpeg", 2048)["features"] == []
    out = scan_single_attachment("Order_Confirmation-2024.pdf", "application/pdf", 2048)
    assert out["features"] == ["enticing_filename:order"]
