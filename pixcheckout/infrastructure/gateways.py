import hmac
import logging
import random
import time
from datetime import date, datetime, timezone
from typing import List, Optional

import requests
from django.conf import settings
from django.utils.dateparse import parse_date, parse_datetime

from pixcheckout.core.ports import IGatewayPagamento, IGatewayRastreamento
from pixcheckout.core.entities import (
    CobrancaPix, ResultadoGateway, RelatorioPedido, ClienteRastreamento,
    ProdutoRastreamento, Comissao, ParametrosRastreamento,
)
from pixcheckout.core.exceptions import ConfiguracaoAusenteError, DadosInvalidosError
from pixcheckout.core.status import mapear_status_utmify
from pixcheckout.infrastructure import mappers

logger = logging.getLogger(__name__)


# ====================================================================
# UTILITÁRIOS
# ====================================================================

_ALFABETO_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(numero: int) -> str:
    if numero == 0:
        return "0"
    digitos = []
    while numero:
        numero, resto = divmod(numero, 36)
        digitos.append(_ALFABETO_BASE36[resto])
    return "".join(reversed(digitos))


def gerar_id_pedido() -> str:
    """
    Gera o identificador do pedido: ORD-<timestamp base36>-<6 caracteres aleatórios>.
    Unicidade probabilística e ordenada pelo tempo; o gateway garante a idempotência.
    """
    timestamp = _base36(int(time.time() * 1000))
    aleatorio = "".join(random.choices(_ALFABETO_BASE36, k=6))
    return f"ORD-{timestamp}-{aleatorio}".upper()


def formatar_data_utmify(valor) -> Optional[str]:
    """Converte datas para o formato do UTMify: 'YYYY-MM-DD HH:MM:SS' em UTC. None -> None."""
    if not valor:
        return None
    if isinstance(valor, datetime):
        data = valor
    elif isinstance(valor, date):
        data = datetime(valor.year, valor.month, valor.day)
    else:
        texto = str(valor).strip()
        data = parse_datetime(texto)
        if data is None:
            somente_data = parse_date(texto)
            if somente_data is None:
                raise ValueError(f"Data inválida: {valor!r}")
            data = datetime(somente_data.year, somente_data.month, somente_data.day)
    # Datas sem fuso são tratadas como UTC
    if data.tzinfo is None:
        data = data.replace(tzinfo=timezone.utc)
    return data.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _mascarar(segredo: str) -> str:
    return f"{segredo[:4]}..." if segredo else "<vazio>"


def _ler_json(response) -> dict:
    try:
        dados = response.json()
    except ValueError:
        return {}
    return dados if isinstance(dados, dict) else {}


# ====================================================================
# GATEWAYS: Implementações concretas que se comunicam com APIs externas.
# ====================================================================

class SlimPayGateway(IGatewayPagamento):
    """
    Gateway para comunicação com a API PIX da SlimPay.
    Implementa a interface IGatewayPagamento do Core. Nenhuma chamada é repetida:
    falhas de rede ou respostas de erro viram ResultadoGateway(sucesso=False).
    """

    def __init__(self, api_url: Optional[str] = None, public_key: Optional[str] = None,
                 secret_key: Optional[str] = None, timeout: Optional[float] = None):
        self.api_base_url = (api_url or settings.SLIMPAY_API_URL).rstrip("/")
        self.public_key = public_key if public_key is not None else settings.SLIMPAY_PUBLIC_KEY
        self.secret_key = secret_key if secret_key is not None else settings.SLIMPAY_SECRET_KEY
        self.timeout = timeout or settings.SLIMPAY_TIMEOUT

    def _headers(self) -> dict:
        if not self.public_key or not self.secret_key:
            raise ConfiguracaoAusenteError(
                "Credenciais da SlimPay não configuradas. Defina SLIMPAY_PUBLIC_KEY e SLIMPAY_SECRET_KEY."
            )
        return {
            "Content-Type": "application/json",
            "x-public-key": self.public_key,
            "x-secret-key": self.secret_key,
        }

    # --- MÉTODOS PÚBLICOS QUE IMPLEMENTAM O PROTOCOLO CORE ---

    def criar_cobranca_pix(self, cobranca: CobrancaPix) -> ResultadoGateway:
        """Cria a cobrança PIX (POST /gateway/pix/receive)."""
        headers = self._headers()
        payload = mappers.cobranca_para_payload(cobranca)
        logger.info("[SlimPay] Criando cobrança PIX do pedido %s no valor de %s",
                    cobranca.identificador, cobranca.valor)

        try:
            response = requests.post(
                f"{self.api_base_url}/gateway/pix/receive",
                json=payload, headers=headers, timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("[SlimPay] Erro de conexão ao criar cobrança do pedido %s: %s", cobranca.identificador, e)
            return ResultadoGateway(sucesso=False, erro=str(e) or "Erro de conexao com SlimPay")

        dados = _ler_json(response)
        if not response.ok:
            logger.error("[SlimPay] Cobrança do pedido %s recusada. Status HTTP %s, corpo: %s",
                         cobranca.identificador, response.status_code, response.text)
            if dados.get("details"):
                logger.error("[SlimPay] Detalhes do erro: %s", dados["details"])
            return ResultadoGateway(
                sucesso=False,
                erro=dados.get("message") or "Erro ao criar cobranca PIX",
                codigo_erro=dados.get("errorCode"),
                resposta=response.text,
            )

        try:
            resposta = mappers.payload_para_resposta_cobranca(dados)
        except (KeyError, TypeError, ArithmeticError) as e:
            logger.error("[SlimPay] Resposta inesperada ao criar cobrança do pedido %s: %s (%r)",
                         cobranca.identificador, response.text, e)
            return ResultadoGateway(sucesso=False, erro="Resposta inválida da SlimPay", resposta=response.text)

        return ResultadoGateway(sucesso=True, dados=resposta, resposta=response.text)

    def buscar_transacao(self, transacao_id: Optional[str] = None,
                         identificador: Optional[str] = None) -> ResultadoGateway:
        """Busca uma transação pelo ID da SlimPay ou pelo identificador do pedido."""
        if not transacao_id and not identificador:
            raise DadosInvalidosError("transactionId ou orderId é obrigatório")
        headers = self._headers()

        params = {}
        if transacao_id:
            params["id"] = transacao_id
        if identificador:
            params["clientIdentifier"] = identificador

        try:
            response = requests.get(
                f"{self.api_base_url}/gateway/transactions",
                params=params, headers=headers, timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("[SlimPay] Erro de conexão ao buscar transação %s: %s", params, e)
            return ResultadoGateway(sucesso=False, erro=str(e) or "Erro de conexao com SlimPay")

        dados = _ler_json(response)
        if not response.ok:
            logger.warning("[SlimPay] Transação %s não retornada. Status HTTP %s", params, response.status_code)
            return ResultadoGateway(
                sucesso=False,
                erro=dados.get("message") or "Erro ao buscar transacao",
                codigo_erro=dados.get("errorCode"),
                resposta=response.text,
            )

        try:
            transacao = mappers.payload_para_transacao(dados)
        except (KeyError, TypeError, ArithmeticError) as e:
            logger.error("[SlimPay] Resposta inesperada ao buscar transação %s: %s (%r)", params, response.text, e)
            return ResultadoGateway(sucesso=False, erro="Resposta inválida da SlimPay", resposta=response.text)

        return ResultadoGateway(sucesso=True, dados=transacao, resposta=response.text)

    def verificar_token_webhook(self, token_recebido: Optional[str], token_esperado: Optional[str]) -> bool:
        """
        Compara o token do webhook com o configurado.
        Sem token configurado a verificação é ignorada: brecha conhecida, sempre registrada em log.
        """
        if not token_esperado:
            logger.warning("[SlimPay] Nenhum token de webhook configurado; verificação ignorada.")
            return True
        return hmac.compare_digest(
            str(token_recebido or "").encode("utf-8"), str(token_esperado).encode("utf-8")
        )


class UtmifyGateway(IGatewayRastreamento):
    """
    Gateway para o serviço de rastreamento de pedidos UTMify.
    Nunca levanta exceção por status HTTP: devolve o corpo bruto no ResultadoGateway
    para que o chamador decida se ignora a falha.
    """

    def __init__(self, api_url: Optional[str] = None, api_token: Optional[str] = None,
                 plataforma: Optional[str] = None, is_test: Optional[bool] = None,
                 timeout: Optional[float] = None):
        self.api_url = api_url or settings.UTMIFY_API_URL
        self.api_token = api_token if api_token is not None else settings.UTMIFY_API_TOKEN
        self.plataforma = plataforma or settings.UTMIFY_PLATAFORMA
        self.is_test = settings.UTMIFY_IS_TEST if is_test is None else is_test
        self.timeout = timeout or settings.UTMIFY_TIMEOUT

    def enviar_pedido(
        self,
        pedido_id: str,
        status: str,
        metodo_pagamento: str,
        cliente: ClienteRastreamento,
        produtos: List[ProdutoRastreamento],
        comissao: Comissao,
        parametros: Optional[ParametrosRastreamento] = None,
        data_aprovacao=None,
        data_reembolso=None,
    ) -> ResultadoGateway:
        """Envia (ou atualiza) um pedido no UTMify."""
        if not self.api_token:
            raise ConfiguracaoAusenteError("Token do UTMify não configurado. Defina UTMIFY_API_TOKEN.")

        # 'approved' é apelido legado de 'paid'
        status_utmify = mapear_status_utmify(status)
        relatorio = RelatorioPedido(
            pedido_id=pedido_id,
            plataforma=self.plataforma,
            metodo_pagamento=metodo_pagamento,
            status=status_utmify,
            data_criacao=formatar_data_utmify(datetime.now(timezone.utc)),
            cliente=cliente,
            produtos=list(produtos),
            parametros=parametros or ParametrosRastreamento(),
            comissao=comissao,
            data_aprovacao=formatar_data_utmify(data_aprovacao),
            data_reembolso=formatar_data_utmify(data_reembolso),
            is_test=self.is_test,
        )
        payload = mappers.relatorio_para_payload(relatorio)

        logger.info("[UTMify] Enviando pedido %s: status %s -> %s, %d produto(s), total %s centavos (token %s)",
                    pedido_id, status, status_utmify, len(relatorio.produtos),
                    comissao.total_centavos, _mascarar(self.api_token))
        logger.debug("[UTMify] Corpo da requisição: %s", payload)

        headers = {
            "x-api-token": self.api_token,
            "Content-Type": "application/json",
        }
        try:
            response = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error("[UTMify] Erro ao enviar o pedido %s: %s", pedido_id, e)
            return ResultadoGateway(sucesso=False, erro=str(e))

        if not response.ok:
            logger.error("[UTMify] Pedido %s recusado. Status HTTP %s, corpo: %s",
                         pedido_id, response.status_code, response.text)
            return ResultadoGateway(sucesso=False, erro=response.text, resposta=response.text)

        logger.info("[UTMify] Pedido %s enviado com sucesso (status %s).", pedido_id, status_utmify)
        return ResultadoGateway(sucesso=True, resposta=response.text)
