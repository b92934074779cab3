from django.urls import path
from . import views


urlpatterns = [
    # URLs da API de pagamento
    path('api/pix/create', views.CriarPixAPIView.as_view(), name='pix-create'),
    path('api/pix/status', views.StatusPixAPIView.as_view(), name='pix-status'),

    # Notificações do gateway (o mesmo caminho é enviado como callbackUrl)
    path('api/webhook/slimpay', views.WebhookSlimPayAPIView.as_view(), name='webhook-slimpay'),

    path('health', views.HealthAPIView.as_view(), name='health'),
]
