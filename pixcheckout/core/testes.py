# pixcheckout/core/testes.py

import unittest
from decimal import Decimal
from unittest.mock import Mock

# Importamos as classes que queremos testar
from pixcheckout.core.use_cases import (
    CriarCobrancaPixUseCase,
    ConsultarStatusPixUseCase,
    ProcessarWebhookSlimPayUseCase,
)
from pixcheckout.core.entities import (
    ItemPedido, RespostaCobranca, ResumoOrdem, DadosPix, ResultadoGateway, Transacao,
    EventoWebhook, ClienteRastreamento, ProdutoRastreamento, ParametrosRastreamento,
)
from pixcheckout.core.exceptions import (
    DadosInvalidosError,
    DocumentoInvalidoError,
    CarrinhoVazioError,
    PagamentoFalhouError,
    TransacaoNaoEncontradaError,
    TokenWebhookInvalidoError,
)
from pixcheckout.core.normalizacao import (
    limpar_documento, formatar_cep, calcular_total, para_centavos, limpar_telefone,
)
from pixcheckout.core import status as st
from pixcheckout.infrastructure.despacho import DespachanteSincrono


def _resposta_cobranca(valor=Decimal('25.00')):
    return RespostaCobranca(
        transacao_id='tx-1',
        status='OK',
        taxa=Decimal('0.50'),
        ordem=ResumoOrdem(id='ord-slim-1', valor=valor),
        pix=DadosPix(qr_code='00020126...', expira_em='2025-01-01T12:00:00Z'),
    )


def _transacao(status='COMPLETED', **extra):
    dados = dict(
        id='tx-1',
        identificador='ORD-ABC-123456',
        status=status,
        metodo_pagamento='PIX',
        valor=Decimal('25.00'),
        moeda='BRL',
        data_criacao='2025-01-01T12:00:00Z',
        data_pagamento='2025-01-01T12:05:00Z',
    )
    dados.update(extra)
    return Transacao(**dados)


# ====================================================================
# NORMALIZAÇÃO
# ====================================================================

class TestNormalizacao(unittest.TestCase):

    def test_documento_remove_pontuacao(self):
        self.assertEqual(limpar_documento('123.456.789-01'), '12345678901')

    def test_documento_com_tamanho_errado_falha(self):
        for documento in ('123.456.789-0', '1234567890123', '', 'abc'):
            with self.subTest(documento=documento):
                with self.assertRaises(DocumentoInvalidoError):
                    limpar_documento(documento)

    def test_cep_com_oito_digitos_recebe_hifen(self):
        self.assertEqual(formatar_cep('12345678'), '12345-678')
        self.assertEqual(formatar_cep('12345-678'), '12345-678')

    def test_cep_com_outro_tamanho_fica_so_com_digitos(self):
        self.assertEqual(formatar_cep('1234-567'), '1234567')
        self.assertEqual(formatar_cep(''), '')

    def test_telefone_somente_digitos(self):
        self.assertEqual(limpar_telefone('(11) 99999-8888'), '11999998888')

    def test_total_soma_itens_e_frete(self):
        itens = [
            ItemPedido(id='1', nome='Caderno', preco_unitario=Decimal('10.00'), quantidade=2),
            ItemPedido(id='2', nome='Caneta', preco_unitario=Decimal('2.50'), quantidade=3),
        ]
        self.assertEqual(calcular_total(itens, Decimal('5.00')), Decimal('32.50'))
        self.assertEqual(calcular_total(itens), Decimal('27.50'))

    def test_centavos_arredonda(self):
        self.assertEqual(para_centavos(Decimal('25.00')), 2500)
        self.assertEqual(para_centavos('19.995'), 2000)
        self.assertEqual(para_centavos(0.1), 10)


class TestMapeamentoStatus(unittest.TestCase):

    def test_status_slimpay(self):
        self.assertEqual(st.mapear_status_slimpay('COMPLETED'), st.PAGO)
        self.assertEqual(st.mapear_status_slimpay('CANCELED'), st.RECUSADO)
        self.assertEqual(st.mapear_status_slimpay('CHARGED_BACK'), st.ESTORNADO)

    def test_status_utmify_aceita_apelido_legado(self):
        self.assertEqual(st.mapear_status_utmify('approved'), st.PAGO)
        self.assertEqual(st.mapear_status_utmify('cancelled'), st.RECUSADO)

    def test_mapeamentos_sao_totais(self):
        for valor in ('QUALQUER', '', None, 42, 'Paid'):
            with self.subTest(valor=valor):
                self.assertEqual(st.mapear_status_slimpay(valor), st.AGUARDANDO_PAGAMENTO)
                self.assertEqual(st.mapear_status_utmify(valor), st.AGUARDANDO_PAGAMENTO)


# ====================================================================
# CASOS DE USO
# ====================================================================

class TestCriarCobrancaPix(unittest.TestCase):

    def setUp(self):
        """
        Prepara os mocks dos gateways. O despacho é síncrono para que o envio
        ao rastreamento possa ser verificado logo após o executar.
        """
        self.pagamento_gateway_mock = Mock()
        self.rastreamento_gateway_mock = Mock()
        self.use_case = CriarCobrancaPixUseCase(
            pagamento_gateway=self.pagamento_gateway_mock,
            rastreamento_gateway=self.rastreamento_gateway_mock,
            despachante=DespachanteSincrono(),
            gerador_id=lambda: 'ORD-TESTE-000001',
            origem='CometaPapelaria',
            url_callback='https://loja.example.com/api/webhook/slimpay',
        )
        self.dados_cliente = {
            'nome': 'Maria Silva',
            'email': 'maria@example.com',
            'documento': '123.456.789-01',
            'telefone': '(11) 99999-8888',
        }
        self.itens = [ItemPedido(id='cad-1', nome='Caderno', preco_unitario=Decimal('10.00'), quantidade=2)]
        self.pagamento_gateway_mock.criar_cobranca_pix.return_value = ResultadoGateway(
            sucesso=True, dados=_resposta_cobranca()
        )

    def test_checkout_completo(self):
        """
        Cenário: carrinho de 2 x 10,00 com frete de 5,00 e total adulterado pelo cliente.
        """
        pedido = self.use_case.executar(
            dados_cliente=self.dados_cliente,
            itens=self.itens,
            dados_endereco={'cep': '12345678', 'estado': 'SP', 'cidade': 'São Paulo',
                            'bairro': 'Centro', 'rua': 'Rua A', 'numero': '10'},
            frete=Decimal('5.00'),
            total_informado=Decimal('1.00'),
            parametros=ParametrosRastreamento(utm_source='facebook', utm_term=''),
        )

        self.assertEqual(pedido.pedido_id, 'ORD-TESTE-000001')
        self.assertEqual(pedido.valor, Decimal('25.00'))

        cobranca = self.pagamento_gateway_mock.criar_cobranca_pix.call_args[0][0]
        self.assertEqual(cobranca.valor, Decimal('25.00'))
        self.assertEqual(cobranca.cliente.documento, '12345678901')
        self.assertEqual(cobranca.cliente.telefone, '11999998888')
        self.assertEqual(cobranca.cliente.endereco.cep, '12345-678')
        self.assertEqual(cobranca.desconto, Decimal('0'))
        self.assertEqual(cobranca.metadata, {'source': 'CometaPapelaria', 'utm_source': 'facebook'})
        self.assertEqual(cobranca.url_callback, 'https://loja.example.com/api/webhook/slimpay')

        kwargs = self.rastreamento_gateway_mock.enviar_pedido.call_args.kwargs
        self.assertEqual(kwargs['status'], st.AGUARDANDO_PAGAMENTO)
        self.assertEqual(kwargs['comissao'].total_centavos, 2500)
        self.assertEqual(kwargs['comissao'].taxa_gateway_centavos, 0)
        self.assertEqual(kwargs['produtos'][0].preco_centavos, 1000)

    def test_dados_do_cliente_incompletos_falha_sem_chamada_externa(self):
        for campo in ('nome', 'email', 'documento', 'telefone'):
            with self.subTest(campo=campo):
                dados = dict(self.dados_cliente, **{campo: ''})
                with self.assertRaises(DadosInvalidosError):
                    self.use_case.executar(dados_cliente=dados, itens=self.itens)
        self.pagamento_gateway_mock.criar_cobranca_pix.assert_not_called()
        self.rastreamento_gateway_mock.enviar_pedido.assert_not_called()

    def test_carrinho_vazio_falha(self):
        with self.assertRaises(CarrinhoVazioError):
            self.use_case.executar(dados_cliente=self.dados_cliente, itens=[])
        self.pagamento_gateway_mock.criar_cobranca_pix.assert_not_called()

    def test_documento_invalido_falha(self):
        dados = dict(self.dados_cliente, documento='123')
        with self.assertRaises(DocumentoInvalidoError):
            self.use_case.executar(dados_cliente=dados, itens=self.itens)
        self.pagamento_gateway_mock.criar_cobranca_pix.assert_not_called()

    def test_gateway_recusa_cobranca(self):
        self.pagamento_gateway_mock.criar_cobranca_pix.return_value = ResultadoGateway(
            sucesso=False, erro='Cliente bloqueado', codigo_erro='CLIENT_BLOCKED'
        )
        with self.assertRaises(PagamentoFalhouError) as contexto:
            self.use_case.executar(dados_cliente=self.dados_cliente, itens=self.itens)
        self.assertEqual(contexto.exception.message, 'Cliente bloqueado')
        self.assertEqual(contexto.exception.codigo_erro, 'CLIENT_BLOCKED')
        self.rastreamento_gateway_mock.enviar_pedido.assert_not_called()

    def test_falha_no_rastreamento_nao_afeta_o_checkout(self):
        self.rastreamento_gateway_mock.enviar_pedido.side_effect = RuntimeError('UTMify fora do ar')

        pedido = self.use_case.executar(dados_cliente=self.dados_cliente, itens=self.itens)

        self.assertEqual(pedido.cobranca.transacao_id, 'tx-1')


class TestConsultarStatusPix(unittest.TestCase):

    def setUp(self):
        self.pagamento_gateway_mock = Mock()
        self.use_case = ConsultarStatusPixUseCase(self.pagamento_gateway_mock)

    def test_sem_identificador_falha(self):
        with self.assertRaises(DadosInvalidosError):
            self.use_case.executar()
        self.pagamento_gateway_mock.buscar_transacao.assert_not_called()

    def test_busca_por_pedido(self):
        self.pagamento_gateway_mock.buscar_transacao.return_value = ResultadoGateway(
            sucesso=True, dados=_transacao()
        )
        transacao = self.use_case.executar(pedido_id='ORD-ABC-123456')
        self.pagamento_gateway_mock.buscar_transacao.assert_called_once_with(
            transacao_id=None, identificador='ORD-ABC-123456'
        )
        self.assertEqual(ConsultarStatusPixUseCase.status_publico(transacao), 'paid')

    def test_status_publico_nao_pago_em_minusculas(self):
        self.assertEqual(ConsultarStatusPixUseCase.status_publico(_transacao('PENDING')), 'pending')

    def test_transacao_nao_encontrada(self):
        self.pagamento_gateway_mock.buscar_transacao.return_value = ResultadoGateway(
            sucesso=False, erro='Transaction not found'
        )
        with self.assertRaises(TransacaoNaoEncontradaError) as contexto:
            self.use_case.executar(transacao_id='tx-404')
        self.assertEqual(contexto.exception.message, 'Transaction not found')


class TestProcessarWebhookSlimPay(unittest.TestCase):

    def setUp(self):
        self.pagamento_gateway_mock = Mock()
        self.pagamento_gateway_mock.verificar_token_webhook.side_effect = (
            lambda recebido, esperado: not esperado or recebido == esperado
        )
        self.rastreamento_gateway_mock = Mock()

    def _use_case(self, token_esperado='segredo', exigir_token=False):
        return ProcessarWebhookSlimPayUseCase(
            pagamento_gateway=self.pagamento_gateway_mock,
            rastreamento_gateway=self.rastreamento_gateway_mock,
            despachante=DespachanteSincrono(),
            token_esperado=token_esperado,
            exigir_token=exigir_token,
        )

    def _evento(self, evento, status='COMPLETED'):
        return EventoWebhook(
            evento=evento,
            token='segredo',
            cliente=ClienteRastreamento(nome='Maria', email='maria@example.com',
                                        telefone='11999998888', documento='12345678901'),
            transacao=_transacao(status),
            produtos=[ProdutoRastreamento(id='cad-1', nome='Caderno', quantidade=1, preco_centavos=1000)],
            parametros=ParametrosRastreamento(utm_source='google'),
        )

    def test_token_invalido(self):
        with self.assertRaises(TokenWebhookInvalidoError):
            self._use_case().validar_token('errado')

    def test_sem_token_configurado_aceita(self):
        self._use_case(token_esperado='').validar_token(None)

    def test_sem_token_configurado_e_obrigatorio_rejeita(self):
        with self.assertRaises(TokenWebhookInvalidoError):
            self._use_case(token_esperado='', exigir_token=True).validar_token('qualquer')

    def test_transacao_paga_envia_aprovado(self):
        status_interno = self._use_case().executar(self._evento(ProcessarWebhookSlimPayUseCase.EVENTO_PAGA))

        self.assertEqual(status_interno, st.PAGO)
        kwargs = self.rastreamento_gateway_mock.enviar_pedido.call_args.kwargs
        self.assertEqual(kwargs['pedido_id'], 'ORD-ABC-123456')
        self.assertEqual(kwargs['status'], st.APROVADO)
        self.assertEqual(kwargs['metodo_pagamento'], 'pix')
        self.assertEqual(kwargs['data_aprovacao'], '2025-01-01T12:05:00Z')
        self.assertEqual(kwargs['comissao'].total_centavos, 2500)

    def test_transacao_cancelada_envia_recusado(self):
        self._use_case().executar(self._evento(ProcessarWebhookSlimPayUseCase.EVENTO_CANCELADA, 'CANCELED'))
        kwargs = self.rastreamento_gateway_mock.enviar_pedido.call_args.kwargs
        self.assertEqual(kwargs['status'], st.RECUSADO)
        self.assertIsNone(kwargs['data_aprovacao'])

    def test_transacao_reembolsada_envia_data_do_reembolso(self):
        self._use_case().executar(self._evento(ProcessarWebhookSlimPayUseCase.EVENTO_REEMBOLSADA, 'REFUNDED'))
        kwargs = self.rastreamento_gateway_mock.enviar_pedido.call_args.kwargs
        self.assertEqual(kwargs['status'], st.REEMBOLSADO)
        self.assertIsNotNone(kwargs['data_reembolso'])

    def test_transacao_criada_e_eventos_desconhecidos_nao_enviam(self):
        use_case = self._use_case()
        use_case.executar(self._evento(ProcessarWebhookSlimPayUseCase.EVENTO_CRIADA, 'PENDING'))
        use_case.executar(self._evento('TRANSACTION_WHATEVER', 'PENDING'))
        self.rastreamento_gateway_mock.enviar_pedido.assert_not_called()


if __name__ == '__main__':
    unittest.main()
