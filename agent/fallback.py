"""
Canned replies used whenever the completion provider can't answer.
Topics are matched in order by lower-cased substring; the first hit wins.
"""
from __future__ import annotations

from typing import Callable, Optional, Sequence, Tuple

from agent.prompts import format_brl
from models.user import UserContext

HOW_IT_WORKS_REPLY = """A ElosCloud é uma plataforma completa de economia colaborativa que oferece:

🏦 **Caixinhas Comunitárias**
• Grupos de economia colaborativa
• Sistema de sorteios mensais
• Gestão transparente de fundos
• Empréstimos entre membros

🛒 **Marketplace Digital**
• Compra e venda de produtos
• Sistema de avaliações
• Integração com pagamentos

💰 **Sistema Financeiro**
• ElosCoins (moeda virtual da plataforma)
• Múltiplas formas de pagamento (PIX, cartão, boleto)
• Trava bancária para segurança

👥 **Rede Social**
• Convites e conexões
• Sistema de mensagens
• Perfis públicos e privados

Você pode navegar pela plataforma através do menu principal. Cada funcionalidade tem suas próprias configurações e opções.

Há alguma área específica que gostaria de explorar primeiro?"""

CAIXINHAS_REPLY = """🏦 **Caixinhas da ElosCloud**

As caixinhas são grupos de economia colaborativa onde os participantes:

**Como funciona:**
• Cada membro contribui mensalmente
• Um membro é sorteado para receber o valor total
• O processo continua até todos receberem

**Tipos de participação:**
• **Administrador**: Cria e gerencia a caixinha
• **Moderador**: Ajuda na gestão e pode gerenciar membros
• **Membro**: Participa das contribuições e sorteios

**Como começar:**
1. Criar uma nova caixinha como administrador
2. Ou ser convidado para uma caixinha existente
3. Definir valor e data de contribuição
4. Aguardar o sorteio mensal

Precisa de ajuda com alguma caixinha específica?"""

PAYMENTS_REPLY = """💰 **Sistema de Pagamentos ElosCloud**

**Métodos aceitos:**
• **PIX**: Transferência instantânea
• **Cartão de Crédito/Débito**
• **Boleto Bancário**: Compensação em até 3 dias úteis
• **ElosCoins**: Moeda virtual da plataforma

**Para problemas de pagamento:**
• Verifique os dados bancários
• Confirme se há saldo suficiente
• Aguarde o processamento (pode levar alguns minutos)

Está com alguma dificuldade específica em um pagamento?"""

MARKETPLACE_REPLY = """🛒 **Marketplace ElosCloud**

**Para Compradores:**
• Navegue pelos produtos disponíveis
• Veja avaliações de outros usuários
• Finalize compras com ElosCoins ou outros métodos

**Para Vendedores:**
• Role de "Seller" necessária
• Cadastre produtos com fotos e descrições
• Gerencie estoque e pedidos

Você quer comprar ou vender produtos?"""

PROFILE_REPLY = """👤 **Perfil e Configurações**

• Nome e foto de perfil
• Descrição pessoal e interesses
• Configurações de privacidade (perfil público ou privado)
• Notificações de mensagens, caixinhas e marketplace

**Para editar seu perfil:**
1. Acesse "Configurações" no menu
2. Edite as informações desejadas
3. Salve as alterações

Precisa alterar alguma configuração específica?"""

TECHNICAL_REPLY = """🔧 **Problemas Técnicos Comuns**

**Problemas de Login:**
• Verifique sua conexão com a internet
• Limpe cache do navegador/app
• Confirme se está usando o e-mail correto

**Problemas de Performance:**
• Feche outras abas/aplicativos
• Tente atualizar a página

Se o problema persistir, digite 'falar com suporte' para conectar-se com nossa equipe especializada.

Qual tipo de problema você está enfrentando?"""

SUPPORT_REPLY = """👥 **Conectando com Suporte Humano**

Vou transferir você para nossa equipe de suporte especializada. Eles têm acesso a:

• Dados detalhados da sua conta
• Histórico completo de transações
• Ferramentas administrativas

Por favor, aguarde um momento enquanto transfiro sua conversa..."""

HELP_REPLY = """📋 **Central de Ajuda ElosCloud**

**Principais tópicos:**
• Digite "caixinhas" - Para aprender sobre economia colaborativa
• Digite "marketplace" - Para comprar/vender produtos
• Digite "pagamentos" - Para questões financeiras
• Digite "perfil" - Para configurações de conta
• Digite "como funciona" - Para visão geral da plataforma

**Ações rápidas:**
• "falar com suporte" - Conecta com atendimento humano

O que você gostaria de explorar?"""

DEFAULT_REPLY = """💬 **Assistente ElosCloud**

Percebi que sua pergunta é bem específica e merece uma resposta detalhada.

**Posso ajudar imediatamente com:**
• Explicações sobre como a plataforma funciona
• Orientações sobre caixinhas e marketplace
• Informações sobre pagamentos e ElosCoins
• Configurações básicas de perfil

Digite 'falar com suporte' para ser conectado a um especialista, ou me diga sobre qual área da plataforma você tem dúvidas: caixinhas, marketplace, pagamentos ou perfil?"""

BALANCE_GENERIC_REPLY = """Sobre o saldo das caixinhas:

O valor que aparece no dashboard representa o **saldo total acumulado** em todas as suas caixinhas - é todo o dinheiro que já foi contribuído pelos membros.

**Não é o valor que você vai receber**, mas sim o total disponível no 'fundo' das caixinhas.

Quando você for contemplado em um sorteio, receberá o valor específico daquela caixinha (número de membros × valor da cota)."""


def _balance_reply(ctx: Optional[UserContext]) -> str:
    if ctx is None or not ctx.caixinhas:
        return BALANCE_GENERIC_REPLY
    return (
        f"Pelo que vejo no seu dashboard, você tem {format_brl(ctx.total_balance)} nas suas caixinhas.\n\n"
        "Esse valor representa o **saldo total acumulado** em todas as caixinhas que você participa.\n\n"
        "Quer que eu explique melhor como funcionam os sorteios ou tem dúvidas sobre alguma caixinha específica?"
    )


def _greeting_reply(ctx: Optional[UserContext]) -> str:
    greeting = "Olá! "
    if ctx is not None and ctx.first_name:
        greeting += f"{ctx.first_name}! "
    greeting += "Como posso te ajudar hoje?"
    if ctx is not None and ctx.caixinhas:
        n = len(ctx.caixinhas)
        greeting += f"\n\nVejo que você participa de {n} caixinha{'s' if n > 1 else ''}. Tem alguma dúvida sobre elas?"
    return greeting


Rule = Tuple[Callable[[str], bool], Callable[[Optional[UserContext]], str]]


def _any(*keywords: str) -> Callable[[str], bool]:
    return lambda text: any(k in text for k in keywords)


def _static(reply: str) -> Callable[[Optional[UserContext]], str]:
    return lambda _ctx: reply


RULES: Sequence[Rule] = (
    (lambda text: "saldo" in text and "caixinha" in text, _balance_reply),
    (_any("oi", "olá", "bom dia", "boa tarde", "boa noite"), _greeting_reply),
    (_any("como funciona", "como usar", "aplicação", "plataforma", "sistema"), _static(HOW_IT_WORKS_REPLY)),
    (_any("caixinha"), _static(CAIXINHAS_REPLY)),
    (_any("pagamento", "pagar", "pix", "cartão", "boleto", "eloscoins"), _static(PAYMENTS_REPLY)),
    (_any("marketplace", "produto", "vender", "comprar", "loja"), _static(MARKETPLACE_REPLY)),
    (_any("perfil", "conta", "configurar", "configuração", "dados"), _static(PROFILE_REPLY)),
    (_any("problema", "erro", "bug", "não funciona", "não consegue", "lento"), _static(TECHNICAL_REPLY)),
    (_any("suporte", "atendente", "humano", "falar com", "ajuda especializada"), _static(SUPPORT_REPLY)),
    (_any("ajuda", "help", "menu", "opções", "comandos"), _static(HELP_REPLY)),
)


def fallback_reply(content: str, user_context: Optional[UserContext] = None) -> str:
    """Always returns non-empty text."""
    text = (content or "").lower()
    for matches, reply in RULES:
        if matches(text):
            return reply(user_context)
    return DEFAULT_REPLY
