"""Intent classification for voice commands.

A fixed cascade of phrase tables maps a transcript to one of six intents.
Each stage assigns its own confidence; the first stage that matches wins and
ties inside a stage go to the earlier table entry:

    1. exact page keyword          navigate     0.98
    2. help trigger                help         0.95
    3. query pattern               query        0.92
    4. nav trigger + page keyword  navigate     0.93
    5. commitment trigger          commitment   0.87
    6. transaction trigger         transaction  0.87
    7. number + currency word      transaction  0.68
    8. anything else               unknown      0.0

Query patterns are checked before navigation triggers on purpose: "mostrar
meu saldo" is a question, not a request to open a page.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from fintrack.voice.models import Intent, IntentType, QueryKey
from fintrack.voice.parser.normalizer import contains_any, fold_all, normalize, word_count

CONFIDENCE_EXACT_ROUTE = 0.98
CONFIDENCE_HELP = 0.95
CONFIDENCE_QUERY = 0.92
CONFIDENCE_NAVIGATE = 0.93
CONFIDENCE_COMMITMENT = 0.87
CONFIDENCE_TRANSACTION = 0.87
CONFIDENCE_HEURISTIC = 0.68


@dataclass(frozen=True)
class Route:
    path: str
    label: str
    keywords: tuple[str, ...]


def _route(path: str, label: str, keywords: list[str]) -> Route:
    return Route(path=path, label=label, keywords=fold_all(keywords))


# Site pages and the words people use for them
ROUTES: tuple[Route, ...] = (
    _route("/", "Dashboard", [
        "dashboard", "início", "inicio", "home", "principal", "painel",
        "página inicial", "pagina inicial", "tela inicial", "visão geral", "visao geral",
    ]),
    _route("/transactions", "Lançamentos", [
        "lançamento", "lançamentos", "lancamento", "lancamentos",
        "transação", "transações", "transacao", "transacoes",
        "gasto", "gastos", "receita", "receitas", "extrato", "movimentação",
        "financeiro", "fluxo de caixa", "entradas e saídas",
    ]),
    _route("/commitments", "Compromissos", [
        "compromisso", "compromissos", "vencimento", "vencimentos",
        "boleto", "boletos", "conta a pagar", "contas a pagar",
        "conta a receber", "contas a receber", "fatura", "faturas",
        "agenda", "agenda financeira", "dívida", "divida",
    ]),
    _route("/savings", "Economia / Metas", [
        "economia", "economias", "poupança", "poupanca", "meta", "metas",
        "saving", "savings", "objetivo", "objetivos", "reserva", "fundo",
        "fundo de emergência", "fundo emergencia",
    ]),
    _route("/reports", "Relatórios", [
        "relatório", "relatórios", "relatorio", "relatorios",
        "report", "reports", "análise", "analise", "gráfico", "grafico",
        "resumo", "estatística", "estatisticas", "demonstrativo",
    ]),
    _route("/manage", "Cadastros", [
        "cadastro", "cadastros", "categoria", "categorias", "gerenciar",
        "fornecedor", "fornecedores", "método de pagamento", "metodo de pagamento",
        "forma de pagamento", "manage", "configurar categorias", "gerenciar categorias",
    ]),
    _route("/profile", "Perfil", [
        "perfil", "profile", "meu perfil", "conta", "minha conta",
        "configurações da conta", "informações pessoais", "dados pessoais",
    ]),
    _route("/admin", "Admin", [
        "admin", "administração", "administracao", "administrador",
        "painel admin", "painel de administração", "gerenciar usuários",
    ]),
)

TRANSACTIONS_ROUTE = "/transactions"
COMMITMENTS_ROUTE = "/commitments"

PAGE_PREFIXES = ("pagina ",)

NAV_TRIGGERS = fold_all([
    "ir para", "ir pra", "abrir", "mostrar", "ver", "navegar", "navegar para",
    "me leve", "me levar", "quero ver", "quero ir", "acessar", "vá para",
    "va para", "vai para", "vai pra", "abre", "mostra", "exibir", "entrar em",
    "acessar a página", "abrir a página", "me mostra", "quero acessar",
])

TRANSACTION_TRIGGERS = fold_all([
    "gastei", "paguei", "comprei", "recebi", "ganhei", "transferi",
    "saiu", "entrou", "lançar", "lancar", "adicionar lançamento",
    "novo lançamento", "registrar", "registrar gasto", "registrar receita",
    "anotar", "botar no caixa", "colocar no caixa", "jogar no caixa",
    "fiz uma compra", "fiz uma venda", "vendi", "recebi pagamento",
    "paguei uma conta", "efetuei pagamento",
])

# Checked before TRANSACTION_TRIGGERS: "tenho que pagar" must not become a spend
COMMITMENT_TRIGGERS = fold_all([
    "criar compromisso", "novo compromisso", "adicionar compromisso",
    "criar boleto", "novo boleto", "adicionar boleto",
    "criar conta a pagar", "nova conta a pagar", "criar fatura",
    "lembrar pagar", "agendar pagamento", "agendar compromisso",
    "compromisso de", "vencimento de", "devo pagar", "vence dia",
    "tenho que pagar", "tenho um boleto", "tenho uma conta",
    "agendar conta", "registrar compromisso", "marcar pagamento",
])

HELP_TRIGGERS = fold_all([
    "ajuda", "help", "o que posso falar", "o que você faz", "o que posso dizer",
    "comandos disponíveis", "comandos disponiveis", "instruções", "instrucoes",
    "como usar", "tutorial", "me ensina",
])

# Declaration order is the tie-break: the first key with a matching phrase wins
QUERY_PATTERNS: tuple[tuple[QueryKey, tuple[str, ...]], ...] = (
    (QueryKey.GREETING, fold_all([
        "olá", "oi", "ola", "bom dia", "boa tarde", "boa noite",
        "o que você faz", "o que voce faz", "o que é isso",
        "como funciona", "me explique", "quem é você", "quem e voce",
        "apresente o sistema", "quais funções", "quais funcoes",
        "o que posso fazer", "me ajude", "instruções", "instrucoes",
    ])),
    (QueryKey.COMMITMENTS_TODAY, fold_all([
        "vencimento hoje", "vencimentos hoje", "vencem hoje",
        "contas hoje", "contas para hoje", "conta para pagar hoje",
        "o que vence hoje", "o que tenho hoje", "tenho contas hoje",
        "compromisso hoje", "compromissos hoje", "pagar hoje",
        "o que preciso pagar hoje", "quais são meus compromissos hoje",
        "tem algo vencendo hoje", "tem conta hoje",
    ])),
    (QueryKey.COMMITMENTS_OVERDUE, fold_all([
        "conta vencida", "contas vencidas", "atrasada", "atrasadas",
        "venceu", "venceram", "em atraso", "atraso",
        "compromisso vencido", "compromissos vencidos",
        "tenho contas vencidas", "tenho alguma conta vencida",
        "o que está atrasado", "o que esta atrasado",
        "tenho atraso", "minhas pendências", "minhas pendencias",
    ])),
    (QueryKey.COMMITMENTS_WEEK, fold_all([
        "vencimentos da semana", "contas da semana", "essa semana",
        "compromissos da semana", "o que vence essa semana",
        "vence essa semana", "vencem essa semana", "semana atual",
        "o que pagar essa semana", "contas para essa semana",
    ])),
    (QueryKey.COMMITMENTS_MONTH, fold_all([
        "vencimentos do mês", "contas do mês", "compromissos do mês",
        "o que vence esse mês", "vence esse mês", "esse mês de contas",
        "o que pagar esse mês", "contas para esse mês",
        "minhas contas do mês",
    ])),
    (QueryKey.COMMITMENTS_PENDING_TOTAL, fold_all([
        "total de compromissos", "total a pagar", "quanto devo",
        "total das contas", "quantos compromissos tenho",
        "quanto tenho a pagar", "valor total das contas",
        "soma das contas", "total pendente",
    ])),
    (QueryKey.BALANCE_MONTH, fold_all([
        "saldo", "saldo do mês", "saldo esse mês", "saldo este mês",
        "meu saldo", "balanço", "balanco", "resultado do mês",
        "resultado esse mês", "como estou financeiramente",
        "sobrou quanto", "quanto sobrou", "minha situação financeira",
        "situacao financeira", "como estão minhas finanças",
        "como estao minhas financas", "saldo atual",
    ])),
    (QueryKey.BALANCE_WEEK, fold_all([
        "saldo da semana", "resultado da semana", "balanço da semana",
        "saldo semanal", "essa semana saldo", "quanto entrou essa semana",
    ])),
    (QueryKey.EXPENSES_MONTH, fold_all([
        "quanto gastei", "total de gastos", "gastos do mês",
        "gastos esse mês", "despesas do mês", "despesas esse mês",
        "total gasto", "quanto saiu", "saída do mês", "saidas do mes",
        "o que gastei", "meus gastos", "total de despesas",
        "quanto eu gastei", "gastei quanto", "minhas despesas",
    ])),
    (QueryKey.EXPENSES_WEEK, fold_all([
        "quanto gastei essa semana", "gastos da semana",
        "despesas da semana", "o que gastei essa semana",
        "saídas da semana", "saidas da semana",
    ])),
    (QueryKey.INCOME_MONTH, fold_all([
        "quanto recebi", "total de receitas", "receitas do mês",
        "receitas esse mês", "quanto entrou", "entrada do mês",
        "renda do mês", "ganhos do mês", "minha renda",
        "total de entradas", "recebi quanto", "quanto ganhei",
        "minhas receitas", "total recebido",
    ])),
    (QueryKey.LAST_TRANSACTION, fold_all([
        "última transação", "ultima transacao",
        "último lançamento", "ultimo lancamento",
        "último gasto", "ultimo gasto", "o que eu gastei por último",
        "última movimentação", "ultima movimentacao",
        "meu último registro", "ultimo registro",
    ])),
    (QueryKey.LAST_TRANSACTIONS, fold_all([
        "últimas transações", "ultimas transacoes",
        "últimos lançamentos", "ultimos lancamentos",
        "últimos gastos", "ultimos gastos",
        "histórico recente", "historico recente",
        "o que fiz recentemente", "movimentações recentes",
        "movimentacoes recentes", "meus últimos registros",
    ])),
    (QueryKey.SAVINGS_GOALS, fold_all([
        "metas de economia", "metas de poupança", "minha economia",
        "quantas metas", "minhas metas", "status das metas",
        "economia atual", "progresso das metas", "minhas poupanças",
        "quanto economizei", "quanto poupei", "meu fundo",
        "minhas reservas", "reserva de emergência", "reserva emergencia",
    ])),
    (QueryKey.TOP_EXPENSES, fold_all([
        "maior gasto", "maiores gastos", "gasto mais alto",
        "top gastos", "gastos mais altos", "o que mais gastei",
        "onde mais gastei", "minha maior despesa",
    ])),
    (QueryKey.TOP_CATEGORY, fold_all([
        "categoria que mais gastei", "qual categoria mais gastei",
        "categoria mais cara", "categorias dos gastos",
        "top categoria", "qual categoria", "onde está indo meu dinheiro",
        "onde esta indo meu dinheiro",
    ])),
    (QueryKey.TRANSACTION_COUNT, fold_all([
        "quantas transações", "quantos lançamentos", "número de transações",
        "numero de transacoes", "quantos registros", "quantos gastos registrei",
        "total de lançamentos", "quantas movimentações",
    ])),
    (QueryKey.BUDGET_STATUS, fold_all([
        "orçamento", "orcamento", "limite de gastos", "limite do orçamento",
        "estourei o orçamento", "ultrapassei o limite",
        "quanto posso gastar", "ainda posso gastar",
        "status do orçamento", "como está meu orçamento",
    ])),
)

_DIGITS = re.compile(r"\d+")
_MONEY_WORD = re.compile(r"(reais|real|r\$|conto|pila|bala)")
_TRAILING_PUNCTUATION = re.compile(r"[.!?]+$")


def _exact_route(text: str) -> Route | None:
    bare = _TRAILING_PUNCTUATION.sub("", text).strip()
    for route in ROUTES:
        for keyword in route.keywords:
            if bare == keyword or any(bare == prefix + keyword for prefix in PAGE_PREFIXES):
                return route
    return None


def find_route(text: str) -> Route | None:
    """First route (table order) with a keyword contained in ``text``."""
    for route in ROUTES:
        if contains_any(text, route.keywords):
            return route
    return None


def find_query_key(text: str) -> QueryKey | None:
    for key, patterns in QUERY_PATTERNS:
        if contains_any(text, patterns):
            return key
    return None


def classify(text: str) -> Intent:
    """Classify a transcript into an Intent.

    Pure: the same text always produces an equal Intent.
    """
    lower = normalize(text)
    if not lower:
        return Intent(type=IntentType.UNKNOWN, confidence=0.0, raw_text=text)

    route = _exact_route(lower)
    if route:
        return Intent(
            type=IntentType.NAVIGATE,
            confidence=CONFIDENCE_EXACT_ROUTE,
            route=route.path,
            raw_text=text,
        )

    if contains_any(lower, HELP_TRIGGERS):
        return Intent(type=IntentType.HELP, confidence=CONFIDENCE_HELP, raw_text=text)

    query_key = find_query_key(lower)
    if query_key:
        return Intent(
            type=IntentType.QUERY,
            confidence=CONFIDENCE_QUERY,
            query_key=query_key,
            raw_text=text,
        )

    if contains_any(lower, NAV_TRIGGERS):
        route = find_route(lower)
        if route:
            return Intent(
                type=IntentType.NAVIGATE,
                confidence=CONFIDENCE_NAVIGATE,
                route=route.path,
                raw_text=text,
            )

    if contains_any(lower, COMMITMENT_TRIGGERS):
        return Intent(type=IntentType.COMMITMENT, confidence=CONFIDENCE_COMMITMENT, raw_text=text)

    if contains_any(lower, TRANSACTION_TRIGGERS):
        return Intent(type=IntentType.TRANSACTION, confidence=CONFIDENCE_TRANSACTION, raw_text=text)

    # Heuristic: a number plus money talk is most likely a spend
    if _DIGITS.search(lower) and _MONEY_WORD.search(lower) and word_count(lower) >= 2:
        return Intent(type=IntentType.TRANSACTION, confidence=CONFIDENCE_HEURISTIC, raw_text=text)

    return Intent(type=IntentType.UNKNOWN, confidence=0.0, raw_text=text)


def route_label(path: str) -> str | None:
    for route in ROUTES:
        if route.path == path:
            return route.label
    return None


# Available commands for the help response
AVAILABLE_COMMANDS: dict[str, list[dict[str, str]]] = {
    "Lançamentos": [
        {"command": "Gastei [valor] [onde]", "example": "Gastei 50 reais no mercado"},
        {"command": "Recebi [valor] [de quem]", "example": "Recebi 1500 do João no pix"},
    ],
    "Compromissos": [
        {"command": "Criar compromisso [descrição] [valor] dia [N]", "example": "Criar compromisso luz 200 dia 10"},
        {"command": "Tenho que pagar [descrição] [quando]", "example": "Tenho que pagar internet amanhã"},
    ],
    "Navegação": [
        {"command": "Ir para [página]", "example": "Ir para relatórios"},
        {"command": "[nome da página]", "example": "Compromissos"},
    ],
    "Consultas": [
        {"command": "Qual meu saldo esse mês", "example": "Saldo do mês"},
        {"command": "Tenho contas vencidas?", "example": "Contas em atraso"},
        {"command": "Quais vencimentos tenho hoje", "example": "Contas de hoje"},
        {"command": "Como está meu orçamento", "example": "Status do orçamento"},
    ],
}


def help_answer() -> str:
    """Spoken summary of what the assistant understands."""
    examples = [
        entry["example"]
        for entries in AVAILABLE_COMMANDS.values()
        for entry in entries[:1]
    ]
    quoted = ", ".join(f'"{example}"' for example in examples)
    return (
        "Você pode registrar lançamentos, criar compromissos, navegar pelas páginas "
        f"e perguntar sobre suas finanças. Experimente dizer: {quoted}."
    )
