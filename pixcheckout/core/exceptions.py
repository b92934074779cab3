class BaseErroCore(Exception):
    """Classe base para todas as exceções da Camada Core."""
    def __init__(self, message="Erro ao processar a requisição."):
        self.message = message
        super().__init__(self.message)

class DadosInvalidosError(BaseErroCore):
    """Erro levantado quando dados inválidos são fornecidos."""
    def __init__(self, message="Os dados fornecidos são inválidos."):
        super().__init__(message)

class DocumentoInvalidoError(DadosInvalidosError):
    """CPF do cliente não tem 11 dígitos após a limpeza."""
    def __init__(self, message="CPF invalido. Deve conter 11 digitos."):
        super().__init__(message)

# ===============================================
# ERROS DE FLUXO DE COMPRA E PAGAMENTO
# ===============================================

class CarrinhoVazioError(BaseErroCore):
    """Erro levantado ao tentar fazer checkout com carrinho vazio."""
    def __init__(self, message="Carrinho vazio"):
        super().__init__(message)

class PagamentoFalhouError(BaseErroCore):
    """Erro levantado quando o Gateway de Pagamento rejeita a cobrança."""
    def __init__(self, message="Erro ao gerar PIX", codigo_erro=None):
        self.codigo_erro = codigo_erro
        super().__init__(message)

class TransacaoNaoEncontradaError(BaseErroCore):
    def __init__(self, message="Transação não encontrada"):
        super().__init__(message)

class TokenWebhookInvalidoError(BaseErroCore):
    def __init__(self, message="Invalid token"):
        super().__init__(message)

# ===============================================
# ERROS DE CONFIGURAÇÃO
# ===============================================

class ConfiguracaoAusenteError(BaseErroCore):
    """
    Credencial obrigatória ausente. Não é tratada como falha do colaborador:
    a chamada nem é tentada.
    """
    pass
