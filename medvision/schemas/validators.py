"""Field rules shared by the request schemas (Brazilian formats and password policy)."""
import re

from pydantic import AfterValidator
from typing import Annotated

PHONE_RE = re.compile(r"^(\+?55\s?)?(\(?\d{2}\)?)?(?:9\d{4}-?\d{4}|\d{4}-?\d{4})$")
CRM_RE = re.compile(r"^\d{4,6}/[A-Z]{2}$")
CPF_RE = re.compile(r"^\d{3}\.?\d{3}\.?\d{3}-?\d{2}$")
CODE_RE = re.compile(r"^\d{6}$")


def normalize_cpf(value: str) -> str:
    value = value.strip()
    if not CPF_RE.match(value):
        raise ValueError("Formato de CPF inválido")
    return re.sub(r"\D", "", value)


def check_phone(value: str) -> str:
    value = value.strip()
    if not PHONE_RE.match(value):
        raise ValueError("Formato de telefone inválido")
    return value


def check_crm(value: str) -> str:
    value = value.strip().upper()
    if not CRM_RE.match(value):
        raise ValueError("Formato de CRM inválido (ex: 12345/SP)")
    return value


def check_code(value: str) -> str:
    if not CODE_RE.match(value):
        raise ValueError("Código deve conter exatamente 6 dígitos")
    return value


def check_doctor_password(value: str) -> str:
    if (
        len(value) < 8
        or len(value.encode()) > 72
        or not re.search(r"[a-z]", value)
        or not re.search(r"[A-Z]", value)
        or not re.search(r"\d", value)
    ):
        raise ValueError("Senha deve conter: maiúscula, minúscula, número e mínimo 8 caracteres")
    return value


def check_admin_password(value: str) -> str:
    if (
        len(value) < 12
        or len(value.encode()) > 72
        or not re.search(r"[a-z]", value)
        or not re.search(r"[A-Z]", value)
        or not re.search(r"\d", value)
        or not re.search(r"[^A-Za-z0-9]", value)
    ):
        raise ValueError(
            "Senha deve conter: maiúscula, minúscula, número, símbolo e mínimo 12 caracteres"
        )
    return value


Cpf = Annotated[str, AfterValidator(normalize_cpf)]
Phone = Annotated[str, AfterValidator(check_phone)]
Crm = Annotated[str, AfterValidator(check_crm)]
Code = Annotated[str, AfterValidator(check_code)]
DoctorPassword = Annotated[str, AfterValidator(check_doctor_password)]
AdminPassword = Annotated[str, AfterValidator(check_admin_password)]
