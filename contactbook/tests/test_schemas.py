import pytest
from pydantic import ValidationError

from contactbook.schemas import ContactForm, first_error


def test_values_are_trimmed():
    form = ContactForm(name="  John Doe ", phone=" 555-0123", email="john@x.com  ")
    c = form.to_contact()
    assert (c.name, c.phone, c.email) == ("John Doe", "555-0123", "john@x.com")


@pytest.mark.parametrize("field", ["name", "phone", "email"])
def test_blank_fields_rejected(field):
    data = {"name": "John", "phone": "555", "email": "j@x.com"}
    data[field] = "   "
    with pytest.raises(ValidationError) as ei:
        ContactForm(**data)
    assert first_error(ei.value) == "All fields are required."


@pytest.mark.parametrize("email", ["john.x.com", "@x.com", "john@"])
def test_invalid_email(email):
    with pytest.raises(ValidationError) as ei:
        ContactForm(name="John", phone="555", email=email)
    assert first_error(ei.value) == "Please enter a valid email address."


@pytest.mark.parametrize("phone", ["+1 (555) 010-0000", "555.0100", "0123456789"])
def test_valid_phones(phone):
    assert ContactForm(name="John", phone=phone, email="j@x.com").phone == phone


@pytest.mark.parametrize("phone", ["call me", "---", "555-CALL"])
def test_invalid_phones(phone):
    with pytest.raises(ValidationError) as ei:
        ContactForm(name="John", phone=phone, email="j@x.com")
    assert first_error(ei.value) == "Please enter a valid phone number."
