from datetime import date, datetime

import locale
import unicodedata

from utils.money import to_decimal

# Tenta usar locale pt_BR para formatação monetária, se disponível
try:
    locale.setlocale(locale.LC_ALL, "pt_BR.UTF-8")
except locale.Error:
    # Em alguns ambientes o locale pode ter outro nome ou não estar disponível.
    pass


def format_currency(value) -> str:
    """
    Formata um número como moeda em reais.
    """
    valor = to_decimal(value)
    try:
        return locale.currency(valor, grouping=True)
    except ValueError:
        # locale sem informação monetária (ex.: "C")
        sinal = "-" if valor < 0 else ""
        texto = f"{abs(valor):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
        return f"{sinal}R$ {texto}"


def format_date(d: date | datetime) -> str:
    """
    Formata datas no padrão brasileiro.
    """
    if isinstance(d, datetime):
        return d.strftime("%d/%m/%Y %H:%M")
    return d.strftime("%d/%m/%Y")


def parse_date(valor) -> date:
    """
    Converte "dd/mm/aaaa", "aaaa-mm-dd", date ou datetime em date.
    """
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    texto = str(valor or "").strip()
    for formato in ("%d/%m/%Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(texto, formato).date()
        except ValueError:
            continue
    raise ValueError(f"Data inválida: {valor!r}")


def normalize_search(texto: str) -> str:
    """
    Normaliza texto para busca: minúsculas, sem espaços e sem acentos.
    "Jo ao Silva" e "joaosilva" ficam iguais.
    """
    texto = "".join((texto or "").lower().split())
    decomposto = unicodedata.normalize("NFD", texto)
    return "".join(c for c in decomposto if not unicodedata.combining(c))


def difference_label(diferenca) -> str:
    """Rótulo da diferença de fechamento: Sobra, Falta ou Conferido."""
    valor = to_decimal(diferenca)
    if valor > 0:
        return "Sobra"
    if valor < 0:
        return "Falta"
    return "Conferido"
