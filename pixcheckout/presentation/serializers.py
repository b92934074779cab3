from decimal import Decimal

from rest_framework import serializers

from pixcheckout.core.entities import ItemPedido, ParametrosRastreamento, EventoWebhook
from pixcheckout.infrastructure import mappers


# ====================================================================
# SERIALIZERS PARA O CHECKOUT PIX
# Os campos obrigatórios do cliente são conferidos pelo caso de uso,
# aqui validamos apenas os tipos.
# ====================================================================

class ClienteCheckoutSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True)
    email = serializers.CharField(required=False, allow_blank=True)
    cpf = serializers.CharField(required=False, allow_blank=True)
    # Alguns formulários enviam o CPF como 'document'
    document = serializers.CharField(required=False, allow_blank=True)
    phone = serializers.CharField(required=False, allow_blank=True)


class EnderecoCheckoutSerializer(serializers.Serializer):
    cep = serializers.CharField(required=False, allow_blank=True)
    street = serializers.CharField(required=False, allow_blank=True)
    number = serializers.CharField(required=False, allow_blank=True)
    complement = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    neighborhood = serializers.CharField(required=False, allow_blank=True)
    city = serializers.CharField(required=False, allow_blank=True)
    state = serializers.CharField(required=False, allow_blank=True)


class ItemCheckoutSerializer(serializers.Serializer):
    id = serializers.CharField()
    name = serializers.CharField()
    price = serializers.DecimalField(max_digits=None, decimal_places=None, min_value=Decimal('0'))
    quantity = serializers.IntegerField(min_value=1)


class FreteCheckoutSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=True)
    name = serializers.CharField(required=False, allow_blank=True)
    price = serializers.DecimalField(max_digits=None, decimal_places=None, min_value=Decimal('0'),
                                     required=False, allow_null=True)
    days = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ParametrosRastreamentoSerializer(serializers.Serializer):
    src = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    sck = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    utm_source = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    utm_campaign = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    utm_medium = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    utm_content = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    utm_term = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class CheckoutPixSerializer(serializers.Serializer):
    """
    Serializer para a validação do corpo do checkout PIX.
    Converte os dados validados para os argumentos do CriarCobrancaPixUseCase.
    """
    customer = ClienteCheckoutSerializer(required=False)
    address = EnderecoCheckoutSerializer(required=False, allow_null=True)
    items = ItemCheckoutSerializer(many=True, required=False)
    total = serializers.DecimalField(max_digits=None, decimal_places=None, required=False, allow_null=True)
    shipping = FreteCheckoutSerializer(required=False, allow_null=True)
    trackingParams = ParametrosRastreamentoSerializer(required=False, allow_null=True)

    def to_dados_cliente(self) -> dict:
        cliente = self.validated_data.get('customer') or {}
        return {
            'nome': cliente.get('name', ''),
            'email': cliente.get('email', ''),
            'documento': cliente.get('cpf') or cliente.get('document', ''),
            'telefone': cliente.get('phone', ''),
        }

    def to_dados_endereco(self):
        endereco = self.validated_data.get('address')
        if not endereco:
            return None
        return {
            'cep': endereco.get('cep', ''),
            'estado': endereco.get('state', ''),
            'cidade': endereco.get('city', ''),
            'bairro': endereco.get('neighborhood', ''),
            'rua': endereco.get('street', ''),
            'numero': endereco.get('number', ''),
            'complemento': endereco.get('complement'),
        }

    def to_itens_entity(self):
        return [
            ItemPedido(
                id=item['id'],
                nome=item['name'],
                preco_unitario=item['price'],
                quantidade=item['quantity'],
            )
            for item in self.validated_data.get('items') or []
        ]

    def to_frete(self):
        frete = self.validated_data.get('shipping')
        if not frete:
            return None
        # Opção de frete sem preço conta como frete grátis
        return frete.get('price') or Decimal('0')

    def to_parametros_entity(self) -> ParametrosRastreamento:
        return ParametrosRastreamento.de_dict(self.validated_data.get('trackingParams'))


class StatusPixQuerySerializer(serializers.Serializer):
    transactionId = serializers.CharField(required=False, allow_blank=True)
    orderId = serializers.CharField(required=False, allow_blank=True)


# ====================================================================
# SERIALIZER DO WEBHOOK DA SLIMPAY
# ====================================================================

class WebhookSlimPaySerializer(serializers.Serializer):
    """Estrutura mínima do evento enviado pela SlimPay."""
    event = serializers.CharField()
    token = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    client = serializers.DictField(required=False)
    transaction = serializers.DictField()
    orderItems = serializers.ListField(child=serializers.DictField(), required=False)
    trackProps = serializers.DictField(required=False, allow_null=True)

    def validate_transaction(self, value):
        if not value.get('id'):
            raise serializers.ValidationError("Transação sem 'id'.")
        return value

    def to_evento_entity(self) -> EventoWebhook:
        return mappers.payload_para_evento_webhook(dict(self.validated_data))
