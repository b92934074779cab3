"""
Configurações para o backend de checkout PIX.
"""

from decouple import config, Csv
from pathlib import Path

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


# ====================================================================
# CONFIGURAÇÕES BÁSICAS
# ====================================================================

# A SECRET_KEY deve ser lida de uma variável de ambiente por segurança.
SECRET_KEY = config('SECRET_KEY', default='django-insecure-default-key-for-development')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,testserver', cast=Csv())


# ====================================================================
# APLICAÇÕES INSTALADAS
# ====================================================================

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'django.contrib.staticfiles',

    # Aplicações de Terceiros (Primeiro)
    'rest_framework',
    'drf_spectacular',

    # Nossas Aplicações
    'pixcheckout.core.apps.CoreConfig', # Entidades e Lógica Pura
    'pixcheckout.infrastructure.apps.InfrastructureConfig', # Gateways externos
    'pixcheckout.presentation.apps.PresentationConfig', # API REST
]


# ====================================================================
# MIDDLEWARE E TEMPLATES
# ====================================================================

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'pixcheckout.urls'

# Necessário apenas para as páginas de documentação (Swagger/Redoc)
TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
            ],
        },
    },
]

WSGI_APPLICATION = 'pixcheckout.wsgi.application'


# ====================================================================
# BANCO DE DADOS
# ====================================================================

# O checkout não guarda estado: tudo vive na SlimPay e no UTMify.
DATABASES = {}


# ====================================================================
# INTERNACIONALIZAÇÃO
# ====================================================================

LANGUAGE_CODE = 'pt-br'

TIME_ZONE = 'America/Sao_Paulo'

USE_I18N = True

USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# ====================================================================
# CONFIGURAÇÕES DO DJANGO REST FRAMEWORK (DRF) E DOCS (SPECTACULAR)
# ====================================================================

SPECTACULAR_SETTINGS = {
    'TITLE': 'API de Checkout PIX',
    'DESCRIPTION': 'Criação de cobranças PIX, consulta de status e webhook da SlimPay.',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}

REST_FRAMEWORK = {
    # Endpoints públicos: checkout da loja e webhook do gateway. Sem sessão e sem banco.
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': ['rest_framework.permissions.AllowAny'],
    'UNAUTHENTICATED_USER': None,
    'DEFAULT_RENDERER_CLASSES': ['rest_framework.renderers.JSONRenderer'],
    'DEFAULT_PARSER_CLASSES': ['rest_framework.parsers.JSONParser'],
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
}


# ====================================================================
# CONFIGURAÇÕES DE SERVIÇOS EXTERNOS (SlimPay, UTMify)
# ====================================================================

# URL pública desta aplicação, usada para montar o callback do webhook
APP_URL = config('APP_URL', default='')

# Tag enviada no metadata de toda cobrança
CHECKOUT_ORIGEM = config('CHECKOUT_ORIGEM', default='CometaPapelaria')

# SlimPay (Gateway PIX)
SLIMPAY_API_URL = config('SLIMPAY_API_URL', default='https://app.slimmpayy.com.br/api/v1')
SLIMPAY_PUBLIC_KEY = config('SLIMPAY_PUBLIC_KEY', default='')
SLIMPAY_SECRET_KEY = config('SLIMPAY_SECRET_KEY', default='')
SLIMPAY_TIMEOUT = config('SLIMPAY_TIMEOUT', default=15, cast=float)
SLIMPAY_WEBHOOK_TOKEN = config('SLIMPAY_WEBHOOK_TOKEN', default='')
# Quando ativo, webhooks são rejeitados enquanto SLIMPAY_WEBHOOK_TOKEN estiver vazio
SLIMPAY_WEBHOOK_EXIGIR_TOKEN = config('SLIMPAY_WEBHOOK_EXIGIR_TOKEN', default=False, cast=bool)

# UTMify (Rastreamento de pedidos)
UTMIFY_API_URL = config('UTMIFY_API_URL', default='https://api.utmify.com.br/api-credentials/orders')
UTMIFY_API_TOKEN = config('UTMIFY_API_TOKEN', default='')
UTMIFY_PLATAFORMA = config('UTMIFY_PLATAFORMA', default='CometaPapelaria')
UTMIFY_IS_TEST = config('UTMIFY_IS_TEST', default=False, cast=bool)
UTMIFY_TIMEOUT = config('UTMIFY_TIMEOUT', default=10, cast=float)

# Envio ao rastreamento: 'thread' (segundo plano) ou 'sync' (na própria requisição)
RASTREAMENTO_DESPACHO = config('RASTREAMENTO_DESPACHO', default='thread')
RASTREAMENTO_MAX_WORKERS = config('RASTREAMENTO_MAX_WORKERS', default=2, cast=int)
# Envios aguardando no pool; acima disso são descartados (melhor esforço)
RASTREAMENTO_MAX_PENDENTES = config('RASTREAMENTO_MAX_PENDENTES', default=1000, cast=int)


# ====================================================================
# CONFIGURAÇÕES DE LOGGING
# ====================================================================

LOG_LEVEL = config('LOG_LEVEL', default='INFO')
LOG_FILE = config('LOG_FILE', default='')
WEBHOOK_DEAD_LETTER_FILE = config('WEBHOOK_DEAD_LETTER_FILE', default='')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': True,
        },
        'pixcheckout': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        # Webhooks que não puderam ser processados (corpo bruto para reprocessamento manual)
        'pixcheckout.webhooks.dead_letter': {
            'handlers': ['console'],
            'level': 'ERROR',
            'propagate': False,
        },
    },
}

if LOG_FILE:
    LOGGING['handlers']['file'] = {
        'level': LOG_LEVEL,
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': LOG_FILE,
        'maxBytes': 1024 * 1024 * 5,  # 5 MB
        'backupCount': 5,
        'formatter': 'verbose',
    }
    LOGGING['loggers']['django']['handlers'].append('file')
    LOGGING['loggers']['pixcheckout']['handlers'].append('file')

if WEBHOOK_DEAD_LETTER_FILE:
    LOGGING['handlers']['dead_letter'] = {
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': WEBHOOK_DEAD_LETTER_FILE,
        'maxBytes': 1024 * 1024 * 5,
        'backupCount': 5,
        'formatter': 'verbose',
    }
    LOGGING['loggers']['pixcheckout.webhooks.dead_letter']['handlers'].append('dead_letter')
