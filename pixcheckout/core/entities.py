from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

# ====================================================================
# ENTIDADES CORE
# Objetos de transporte: nada aqui é persistido pelo sistema.
# ====================================================================

@dataclass
class Endereco:
    """Endereço de cobrança do cliente."""
    cep: str
    estado: str
    cidade: str
    bairro: str
    rua: str
    numero: str
    complemento: Optional[str] = None
    pais: str = "BR"


@dataclass
class Cliente:
    """Cliente do checkout. O documento é o CPF já normalizado (somente dígitos)."""
    nome: str
    email: str
    telefone: str
    documento: str
    endereco: Optional[Endereco] = None


@dataclass
class ItemPedido:
    """Item do carrinho no momento da compra."""
    id: str
    nome: str
    preco_unitario: Decimal
    quantidade: int

    @property
    def subtotal(self) -> Decimal:
        """Calcula o subtotal do item."""
        return self.preco_unitario * self.quantidade


@dataclass
class CobrancaPix:
    """Pedido de cobrança PIX enviado ao gateway."""
    identificador: str
    valor: Decimal
    cliente: Cliente
    itens: List[ItemPedido]
    taxa_frete: Decimal = Decimal("0")
    taxa_extra: Decimal = Decimal("0")
    desconto: Decimal = Decimal("0")
    metadata: Dict[str, Any] = field(default_factory=dict)
    url_callback: Optional[str] = None


@dataclass
class ResumoOrdem:
    id: str
    valor: Decimal
    moeda: str = "BRL"


@dataclass
class DadosPix:
    qr_code: str
    expira_em: Optional[str] = None


@dataclass
class RespostaCobranca:
    """Resposta do gateway à criação da cobrança."""
    transacao_id: str
    status: str  # OK, FAILED, PENDING, REJECTED, CANCELED
    taxa: Decimal
    ordem: ResumoOrdem
    pix: DadosPix


@dataclass
class PedidoPix:
    """Resultado do checkout: o pedido gerado e a cobrança criada no gateway."""
    pedido_id: str
    valor: Decimal
    cobranca: RespostaCobranca


@dataclass
class Transacao:
    """Estado de uma transação consultada no gateway."""
    id: str
    identificador: str
    status: str  # COMPLETED, PENDING, FAILED, REFUNDED, CHARGED_BACK
    metodo_pagamento: str
    valor: Decimal
    moeda: str
    data_criacao: Optional[str] = None
    data_pagamento: Optional[str] = None
    end_to_end_id: Optional[str] = None
    possui_info_pix: bool = False


# ====================================================================
# RASTREAMENTO (UTMify)
# ====================================================================

CAMPOS_RASTREAMENTO = (
    "src", "sck", "utm_source", "utm_campaign", "utm_medium", "utm_content", "utm_term",
)


@dataclass
class ParametrosRastreamento:
    """Parâmetros de atribuição de marketing. Todos opcionais."""
    src: Optional[str] = None
    sck: Optional[str] = None
    utm_source: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_content: Optional[str] = None
    utm_term: Optional[str] = None

    @classmethod
    def de_dict(cls, dados: Optional[dict]) -> "ParametrosRastreamento":
        dados = dados or {}
        # String vazia conta como ausente
        return cls(**{campo: (dados.get(campo) or None) for campo in CAMPOS_RASTREAMENTO})

    def presentes(self) -> Dict[str, str]:
        """Retorna apenas os parâmetros preenchidos."""
        return {campo: getattr(self, campo) for campo in CAMPOS_RASTREAMENTO if getattr(self, campo)}


@dataclass
class ClienteRastreamento:
    nome: str
    email: str
    telefone: Optional[str]
    documento: Optional[str]
    pais: str = "BR"


@dataclass
class ProdutoRastreamento:
    id: str
    nome: str
    quantidade: int
    preco_centavos: int


@dataclass
class Comissao:
    """Valores da comissão em centavos."""
    total_centavos: int
    taxa_gateway_centavos: int
    comissao_usuario_centavos: int
    moeda: str = "BRL"


@dataclass
class RelatorioPedido:
    """Pedido no formato aceito pelo serviço de rastreamento."""
    pedido_id: str
    plataforma: str
    metodo_pagamento: str
    status: str
    data_criacao: str
    cliente: ClienteRastreamento
    produtos: List[ProdutoRastreamento]
    parametros: ParametrosRastreamento
    comissao: Comissao
    data_aprovacao: Optional[str] = None
    data_reembolso: Optional[str] = None
    is_test: bool = False


# ====================================================================
# RESULTADOS E EVENTOS
# ====================================================================

@dataclass
class ResultadoGateway:
    """
    Resultado estruturado de uma chamada a serviço externo.
    Falhas do colaborador viram `sucesso=False` em vez de exceção.
    """
    sucesso: bool
    dados: Any = None
    erro: Optional[str] = None
    codigo_erro: Optional[str] = None
    resposta: Optional[str] = None


@dataclass
class EventoWebhook:
    """Notificação de mudança de status recebida do gateway."""
    evento: str
    token: Optional[str]
    cliente: ClienteRastreamento
    transacao: Transacao
    produtos: List[ProdutoRastreamento]
    parametros: ParametrosRastreamento
