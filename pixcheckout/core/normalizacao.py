# pixcheckout/core/normalizacao.py
"""Limpeza e formatação dos campos do checkout (documento, telefone, CEP, valores)."""
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from pixcheckout.core.entities import ItemPedido
from pixcheckout.core.exceptions import DocumentoInvalidoError

DIGITOS_CPF = 11


def somente_digitos(valor: Optional[str]) -> str:
    return re.sub(r'\D', '', str(valor or ''))


def limpar_documento(documento: str) -> str:
    """Remove pontuação do CPF e exige exatamente 11 dígitos."""
    documento_limpo = somente_digitos(documento)
    if len(documento_limpo) != DIGITOS_CPF:
        raise DocumentoInvalidoError()
    return documento_limpo


def limpar_telefone(telefone: str) -> str:
    """Telefone apenas com números (DDD + número, ex: 11999999999)."""
    return somente_digitos(telefone)


def formatar_cep(cep: str) -> str:
    """Insere o hífen após o 5º dígito quando restam exatamente 8 dígitos."""
    numeros = somente_digitos(cep)
    if len(numeros) == 8:
        return f"{numeros[:5]}-{numeros[5:]}"
    return numeros


def calcular_total(itens: Iterable[ItemPedido], frete: Optional[Decimal] = None) -> Decimal:
    """Soma preço x quantidade de cada item mais o frete (zero quando ausente)."""
    total_produtos = sum((item.subtotal for item in itens), Decimal('0'))
    return total_produtos + (frete or Decimal('0'))


def para_centavos(valor) -> int:
    """Converte um valor em reais para centavos inteiros (arredondamento comercial)."""
    return int((Decimal(str(valor)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))
