from cv_ingestion.core.text_patterns import (
    extract_dates,
    extract_emails,
    extract_github_profile,
    extract_linkedin_profile,
    extract_phone_numbers,
    extract_urls,
    extract_years,
)


def test_emails_deduplicated_in_scan_order():
    text = "Contact: jane@example.com, jane@example.com or j.doe@work.org"
    assert extract_emails(text) == ["jane@example.com", "j.doe@work.org"]


def test_international_and_north_american_phones():
    text = "Call +880 1712-345678 or (555) 123-4567"
    assert extract_phone_numbers(text) == ["+880 1712-345678", "(555) 123-4567"]


def test_international_numbers_keep_every_digit():
    assert extract_phone_numbers("+8801712345678") == ["+8801712345678"]
    assert extract_phone_numbers("Tel: +44 20 7946 0958.") == ["+44 20 7946 0958"]
    assert extract_phone_numbers("+1 (415) 555-0199") == ["+1 (415) 555-0199"]


def test_bangladeshi_mobile_and_local_number():
    assert extract_phone_numbers("Mobile 01712345678") == ["01712345678"]
    assert extract_phone_numbers("Phone 555-1234") == ["555-1234"]


def test_year_ranges_are_not_phone_numbers():
    """Short digit runs such as '2018 - 2020' must not be reported as phones."""
    assert extract_phone_numbers("Worked there 2018 - 2020") == []
    assert extract_phone_numbers("") == []


def test_profile_links():
    text = "https://www.linkedin.com/in/jane-doe/ and github.com/janedoe"
    assert extract_linkedin_profile(text) == "https://www.linkedin.com/in/jane-doe"
    assert extract_github_profile(text) == "github.com/janedoe"
    assert extract_linkedin_profile("no links here") is None


def test_urls_strip_trailing_punctuation():
    assert extract_urls("Site: https://janedoe.dev. Blog https://blog.janedoe.dev") == [
        "https://janedoe.dev",
        "https://blog.janedoe.dev",
    ]


def test_dates_cover_month_slash_and_bare_year():
    dates = extract_dates("Jan 2020 to 03/2021, released 2022-05-01")
    assert "Jan 2020" in dates
    assert "03/2021" in dates
    assert "2022-05-01" in dates
    assert "2022" in dates


def test_years():
    assert extract_years("BSc 2016 - 2020") == [2016, 2020]
