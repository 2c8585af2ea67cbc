"""
Order email bodies. Styling belongs to the mail layout, not here.
"""

from html import escape

from storefront._types import format_money
from storefront.ledger import Order


def _layout(title: str, content: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{escape(title)}</title></head><body>{content}</body></html>"
    )


def order_created_subject(order: Order) -> str:
    return f"Pedido #{order.id} criado"


def order_confirmed_subject(order: Order) -> str:
    return f"Pedido #{order.id} confirmado"


def order_created_email(order: Order, user_name: str) -> str:
    content = f"""
    <h2>Pedido Criado com Sucesso</h2>
    <p>Olá {escape(user_name)},</p>
    <p>O seu pedido foi criado com sucesso e está a aguardar pagamento.</p>
    <ul>
      <li><strong>Número do Pedido:</strong> #{escape(order.id)}</li>
      <li><strong>Total:</strong> €{format_money(order.total)}</li>
      <li><strong>Data:</strong> {order.created_at:%d/%m/%Y %H:%M}</li>
    </ul>
    <p>Por favor, complete o pagamento para confirmar o seu pedido.</p>
    """
    return _layout(order_created_subject(order), content)


def order_confirmed_email(order: Order, user_name: str) -> str:
    content = f"""
    <h2>Pagamento Confirmado!</h2>
    <p>Olá {escape(user_name)},</p>
    <p>O pagamento do seu pedido foi confirmado com sucesso.</p>
    <ul>
      <li><strong>Número do Pedido:</strong> #{escape(order.id)}</li>
      <li><strong>Total Pago:</strong> €{format_money(order.total)}</li>
      <li><strong>Estado:</strong> Confirmado</li>
    </ul>
    <p>O seu pedido está agora em preparação e será enviado em breve.</p>
    """
    return _layout(order_confirmed_subject(order), content)


__all__ = (
    "order_created_subject",
    "order_confirmed_subject",
    "order_created_email",
    "order_confirmed_email",
)
