"""Deterministic transaction draft parser.

"Gastei 50 reais no mercado no pix" → EXPENSE, 50.0, category "Mercado",
payment method "Pix", description "Mercado". The draft always goes to the
transaction form for review; ``needs_review`` flags drafts the user should
look at before saving.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import date, timedelta

from fintrack.voice.models import TransactionDraft
from fintrack.voice.parser.commitment_extractor import next_day_of_month
from fintrack.voice.parser.normalizer import (
    clean_token,
    contains_any,
    find_amounts,
    fold_all,
    normalize,
    tokenize,
)
from fintrack.voice.snapshot import Category, PaymentMethod, Supplier, TransactionType

logger = logging.getLogger(__name__)

AMOUNT_CEILING = 500_000
FALLBACK_CATEGORY = "extras"
DEFAULT_PAYMENT_METHOD = "dinheiro"
AMOUNT_QUESTION = "Qual o valor do lançamento?"

BASE_CONFIDENCE = 0.4
TYPE_BONUS = 0.2
AMOUNT_BONUS = 0.2
PAYMENT_BONUS = 0.05
KEYWORD_CATEGORY_CONFIDENCE = 0.95
FALLBACK_CATEGORY_CONFIDENCE = 0.5
REVIEW_THRESHOLD = 0.8

INCOME_KEYWORDS = fold_all([
    "recebi", "ganhei", "salário", "renda", "pix recebido",
    "venda", "provento", "receita", "depósito", "freelance",
    "entrou", "transferência recebida", "reembolso", "dividendos", "rendimento", "aporte extra",
])

EXPENSE_KEYWORDS = fold_all([
    "gastei", "paguei", "comprei", "compra", "débito", "crédito",
    "saiu", "pagamento", "boleto", "conta", "fatura",
])

PREFIX_STRIPS = fold_all([
    "gastei", "paguei", "comprei", "recebi", "ganhei", "transferi",
    "fiz um lançamento de", "fiz um pagamento de", "anotar",
    "registrar", "lançar", "adicionar", "botar",
    "novo lançamento", "nova despesa", "nova receita",
    "foi um gasto de", "saiu", "entrou",
])

# Words that are never part of a description
FILLER = frozenset(fold_all([
    "reais", "real", "conto", "contos", "pila", "pilas", "bala",
    "um", "uma", "uns", "umas", "de", "do", "da", "dos", "das",
    "o", "a", "os", "as", "no", "na", "nos", "nas",
    "pelo", "pela", "pelos", "pelas", "ao", "aos", "à", "às",
    "por", "pra", "pro", "com",
    "gastei", "paguei", "comprei", "gastos", "gasto", "valor",
    "ok", "okay", "finalizar", "pronto", "concluir", "confirmar",
    # dates
    "hoje", "ontem", "anteontem", "dia", "semana", "mês", "amanhã",
    # payment
    "pix", "crédito", "débito", "dinheiro", "espécie", "cartão",
    "nubank", "inter", "itaú", "bradesco", "santander", "cash",
]))

# Category name -> keywords, in priority order: the first category with a hit wins
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = tuple(
    (name, fold_all(keywords))
    for name, keywords in (
        ("cartão de crédito", [
            "fatura", "fatura do cartão", "cartão", "anuidade", "rotativo", "juros do cartão",
            "parcela do cartão", "nubank fatura", "itaú card", "santander card", "inter card",
            "mastercard", "visa", "cartão de crédito", "limite do cartão",
        ]),
        ("viagens", [
            "viagem", "hotel", "pousada", "airbnb", "voo", "aéreo", "milhas",
            "aluguel de carro", "transfer", "tour", "excursão",
        ]),
        ("assinaturas", [
            "netflix", "amazon prime", "prime video", "disney", "hbo", "globoplay",
            "spotify", "deezer", "youtube premium", "icloud", "google one", "microsoft 365",
            "adobe", "canva", "chatgpt", "notion", "dropbox", "kindle unlimited", "game pass",
            "ps plus", "assinatura", "assinaturas", "mensalidade de app",
        ]),
        ("contas", [
            "internet", "wifi", "banda larga", "vivo fibra", "claro net", "oi fibra",
            "luz", "energia", "água", "esgoto", "gás", "telefone", "plano",
            "condomínio", "boleto de conta",
        ]),
        ("transporte", [
            "gasolina", "combustível", "etanol", "álcool", "diesel", "posto", "abasteci",
            "abastecimento", "uber", "99", "táxi", "ônibus", "metrô", "passagem",
            "estacionamento", "zona azul", "lava jato", "lavagem", "pneu", "troca de óleo",
            "oficina", "mecânico", "revisão", "alinhamento", "balanceamento", "bateria",
        ]),
        ("mercado", [
            "mercado", "supermercado", "atacadão", "assaí", "carrefour", "pão de açúcar",
            "hortifruti", "feira", "açougue", "rancho", "compra do mês", "compras do mês",
            "produtos de limpeza", "detergente", "sabão", "papel higiênico", "atacado",
        ]),
        ("educação", [
            "mensalidade escolar", "mensalidade", "escola", "colégio", "faculdade", "curso",
            "idioma", "inglês", "apostila", "livro", "material escolar", "caderno", "reforço",
            "aula particular", "udemy", "hotmart",
        ]),
        ("saúde", [
            "farmácia", "remédio", "medicamento", "consulta", "médico", "exame", "laboratório",
            "dentista", "psicólogo", "terapia", "fisioterapia", "academia",
        ]),
        ("casa", [
            "conserto", "manutenção", "pedreiro", "pintor", "eletricista", "encanador",
            "material de construção", "cimento", "tinta", "ferramenta", "ferramentas",
            "móvel", "móveis", "sofá", "colchão", "cama", "guarda-roupa", "jardinagem",
            "reforma", "pintura", "torneira", "chuveiro", "lâmpada", "decoração", "faxina",
        ]),
        ("vestuário", [
            "roupa", "camisa", "calça", "sapato", "tênis", "vestido", "shopping", "moda",
            "costureira", "loja de roupa",
        ]),
        ("presentes e doações", [
            "presente", "lembrancinha", "aniversário", "doação", "dízimo", "igreja", "ong", "vaquinha",
        ]),
        ("pets", [
            "pet", "pet shop", "petshop", "ração", "banho e tosa", "veterinário", "vacina do pet",
            "areia", "tapete higiênico",
        ]),
        ("impostos e taxas", [
            "iptu", "ipva", "imposto de renda", "darf", "licenciamento", "detran",
            "multa", "multa de trânsito", "taxa", "cartório",
        ]),
        ("investimentos", [
            "investi", "investimento", "aporte", "apliquei", "tesouro", "cdb", "lci", "lca",
            "ações", "etf", "fii", "fundo", "fundos", "corretora", "nuinvest",
        ]),
        ("beleza e autocuidado", [
            "salão", "cabelo", "cabeleireiro", "barbearia", "barbeiro", "barba", "escova",
            "progressiva", "tintura", "manicure", "pedicure", "unha", "sobrancelha", "depilação",
            "skincare", "hidratante", "perfume", "maquiagem", "massagem", "spa", "shampoo",
        ]),
        ("lazer", [
            "cinema", "show", "teatro", "bar", "balada", "ingresso", "evento", "passeio", "parque",
        ]),
        ("dívidas e empréstimos", [
            "empréstimo", "financiamento", "consignado", "acordo", "renegociação", "serasa",
            "dívida", "parcela do banco", "juros", "quitar",
        ]),
        ("alimentação", [
            "almoço", "jantar", "lanche", "restaurante", "lanchonete", "padaria", "café",
            "cafeteria", "ifood", "uber eats", "delivery", "pizza", "hambúrguer", "açaí",
            "sorvete", "sorveteria", "churrasco", "refeição", "bebida", "refrigerante",
            "refri", "suco", "energético",
        ]),
    )
)

# Regex over normalized text -> fragments of payment method names
PAYMENT_KEYWORDS: tuple[tuple[re.Pattern[str], tuple[str, ...]], ...] = tuple(
    (re.compile(pattern), fold_all(themes))
    for pattern, themes in (
        (r"\bpix\b", ["pix"]),
        (r"\bcredito\b|\bcartao\b(?!\s+de\s+debito)", ["crédito", "cartão crédito", "visa", "mastercard"]),
        (r"\bdebito\b", ["débito", "cartão débito"]),
        (r"\bdinheiro\b|\bespecie\b|\bcash\b", ["dinheiro", "espécie", "cash"]),
        (r"\bnubank\b|\broxinho\b", ["nubank"]),
        (r"\binter\b", ["inter"]),
        (r"\bitau\b", ["itaú"]),
        (r"\bbradesco\b", ["bradesco"]),
        (r"\bsantander\b", ["santander"]),
        (r"\bc6\b", ["c6"]),
        (r"\bbb\b|\bbrasil\b", ["banco do brasil", "bb"]),
        (r"\bcaixa\b", ["caixa", "cef"]),
    )
)

_DAY_OF_MONTH = re.compile(r"\bdia\s+(\d{1,2})\b")
_NUMERIC_TOKEN = re.compile(r"^\d+([.,]\d+)?$")


def _has_word(text: str, phrase: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text) is not None


def detect_type(norm: str) -> tuple[TransactionType, bool]:
    """Transaction type and whether the keywords were unambiguous."""
    income = contains_any(norm, INCOME_KEYWORDS)
    expense = contains_any(norm, EXPENSE_KEYWORDS)
    if income and not expense:
        return TransactionType.INCOME, True
    if expense and not income:
        return TransactionType.EXPENSE, True
    return TransactionType.EXPENSE, False


def detect_date(norm: str, today: date) -> date:
    if "anteontem" in norm:
        return today - timedelta(days=2)
    if "ontem" in norm:
        return today - timedelta(days=1)
    match = _DAY_OF_MONTH.search(norm)
    if match and 1 <= int(match.group(1)) <= 31:
        return next_day_of_month(int(match.group(1)), today)
    return today


def resolve_category_name(norm: str) -> str | None:
    """Name of the first keyword category mentioned, or None."""
    for name, keywords in CATEGORY_KEYWORDS:
        if any(_has_word(norm, keyword) for keyword in keywords):
            return name
    return None


def _pick_category(name: str | None, categories: Sequence[Category]) -> Category | None:
    by_name = {normalize(category.name): category for category in reversed(categories)}
    if name and normalize(name) in by_name:
        return by_name[normalize(name)]
    return by_name.get(FALLBACK_CATEGORY) or (categories[0] if categories else None)


def _default_payment_method(payment_methods: Sequence[PaymentMethod]) -> PaymentMethod | None:
    for method in payment_methods:
        if DEFAULT_PAYMENT_METHOD in normalize(method.name):
            return method
    return payment_methods[0] if payment_methods else None


def detect_payment_method(norm: str, payment_methods: Sequence[PaymentMethod]) -> PaymentMethod | None:
    """Payment method named in the text, or None when nothing matches."""
    for pattern, themes in PAYMENT_KEYWORDS:
        if not pattern.search(norm):
            continue
        for method in payment_methods:
            name = normalize(method.name)
            if any(theme in name for theme in themes):
                return method
    return None


def detect_supplier(norm: str, suppliers: Sequence[Supplier]) -> Supplier | None:
    for supplier in suppliers:
        name = normalize(supplier.name)
        if len(name) >= 3 and _has_word(norm, name):
            return supplier
    return None


def build_description(text: str, transaction_type: TransactionType) -> str:
    tokens = tokenize(text.strip())
    folded = [clean_token(token) for token in tokens]
    for prefix in PREFIX_STRIPS:
        words = prefix.split()
        if folded[:len(words)] == words:
            tokens = tokens[len(words):]
            break

    kept = []
    for token in tokens:
        cleaned = clean_token(token)
        if cleaned in FILLER or cleaned.startswith("r$") or _NUMERIC_TOKEN.match(cleaned):
            continue
        if len(token) <= 1:
            continue
        kept.append(token)

    description = " ".join(kept).strip()
    if description:
        return description[0].upper() + description[1:].lower()
    return "Compra" if transaction_type == TransactionType.EXPENSE else "Receita"


def parse_transaction(
    text: str,
    categories: Sequence[Category],
    payment_methods: Sequence[PaymentMethod],
    suppliers: Sequence[Supplier] | None = None,
    today: date | None = None,
) -> TransactionDraft:
    """Parse a spoken expense/income into a TransactionDraft.

    Args:
        text: Raw transcript
        categories: User categories (matched by name)
        payment_methods: User payment methods
        suppliers: Optional suppliers, matched by name
        today: Reference date (defaults to today)

    Returns:
        A draft that is always complete enough to prefill the form
    """
    today = today or date.today()
    norm = normalize(text)
    confidence = BASE_CONFIDENCE

    transaction_type, unambiguous = detect_type(norm)
    if unambiguous:
        confidence += TYPE_BONUS

    amount = max((v for v in find_amounts(norm) if 0 < v < AMOUNT_CEILING), default=0.0)
    if amount:
        confidence += AMOUNT_BONUS

    category_name = resolve_category_name(norm)
    category = _pick_category(category_name, categories)
    confidence = max(
        confidence,
        KEYWORD_CATEGORY_CONFIDENCE if category_name else FALLBACK_CATEGORY_CONFIDENCE,
    )

    payment_method = detect_payment_method(norm, payment_methods)
    if payment_method:
        confidence += PAYMENT_BONUS
    else:
        payment_method = _default_payment_method(payment_methods)

    supplier = detect_supplier(norm, suppliers or ())
    confidence = min(confidence, 1.0)

    draft = TransactionDraft(
        type=transaction_type,
        description=build_description(text, transaction_type),
        amount=amount,
        date=detect_date(norm, today),
        category_id=category.id if category else "",
        payment_method_id=payment_method.id if payment_method else None,
        supplier_id=supplier.id if supplier else None,
        confidence=round(confidence, 2),
        needs_clarification=amount == 0,
        question=AMOUNT_QUESTION if amount == 0 else "",
        needs_review=amount == 0 or category_name is None or confidence < REVIEW_THRESHOLD,
    )
    logger.debug(
        "Parsed transaction draft: type=%s amount=%s category=%s confidence=%.2f",
        draft.type.value, draft.amount, draft.category_id, draft.confidence,
    )
    return draft
