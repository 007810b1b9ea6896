"""WhatsApp message templates (pt-BR).

Plain strings for fixed texts, small render functions where figures are
interpolated. Amounts always go through ``format_brl``.
"""

from datetime import date
from typing import Optional

from kimo.domain.enums import ExpenseType
from kimo.domain.values import format_brl, format_km
from kimo.services.cost_engine import WEEKDAY_NAMES, Breakeven, SuggestedGoal, TripEvaluation

DIVIDER = "━━━━━━━━━━━━━━━━"

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

GENERIC_ERROR = '❌ Desculpe, ocorreu um erro. Digite "oi" para recomeçar.'
SAVE_ERROR = '❌ Erro ao salvar. Tente novamente mais tarde ou digite "oi" para recomeçar.'
ONBOARDING_SAVE_ERROR = '❌ Erro ao salvar configurações. Digite "oi" para tentar novamente.'
MISSING_CONFIGURATION = (
    "⚙️ Seu perfil ainda não está configurado.\n\n"
    "Digite *oi* para fazer o cadastro rápido e liberar os cálculos!"
)
INVALID_INPUT = "❌ Valor inválido. Confira e tente novamente."

# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------

ONBOARDING_START = """👋 Olá! Sou o *KIMO*, seu assistente financeiro.

Vou te fazer algumas perguntas rápidas para te ajudar melhor.

*1️⃣ Você dirige com:*

1 - Carro próprio quitado
2 - Carro próprio financiado
3 - Carro alugado (Localiza, Movida, Kovi)
4 - Híbrido (uso pessoal + apps)

Digite o número da sua opção:"""

INVALID_PROFILE = "❌ Opção inválida. Digite um número de 1 a 4:"

PROFILE_NAMES = {
    "own_paid": "Carro próprio quitado",
    "own_financed": "Carro próprio financiado",
    "rented": "Carro alugado",
    "hybrid": "Híbrido",
}


def invalid_value(example: str) -> str:
    return f"❌ Valor inválido. Digite apenas números (ex: {example}):"


def ask_rental(profile_name: str) -> str:
    return (
        f"✅ {profile_name}!\n\n"
        "*2️⃣ Quanto você paga de aluguel por semana?*\n\n"
        "Digite apenas o valor (ex: 900):"
    )


def ask_car_value(profile_name: str) -> str:
    return (
        f"✅ {profile_name}!\n\n"
        "*2️⃣ Qual o valor aproximado do seu carro?*\n\n"
        "Digite apenas o valor (ex: 50000):"
    )


def ask_financing_balance(car_value: float) -> str:
    return (
        f"✅ {format_brl(car_value)}\n\n"
        "*3️⃣ Quanto ainda falta pagar do financiamento?*\n\n"
        "Digite apenas o valor (ex: 30000):"
    )


def ask_financing_payment(balance: float) -> str:
    return (
        f"✅ Saldo de {format_brl(balance)}\n\n"
        "*Quanto é a parcela do financiamento por mês?*\n\n"
        "Digite apenas o valor (ex: 800):"
    )


def ask_financing_months(payment: float) -> str:
    return (
        f"✅ Parcela de {format_brl(payment)}/mês\n\n"
        "*Quantas parcelas ainda faltam?*\n\n"
        "Digite apenas o número (ex: 36):"
    )


ASK_FUEL_CONSUMPTION = """✅ Anotado!

*Quantos km/litro seu carro faz?*

Digite apenas o número (ex: 12):"""

INVALID_FUEL_CONSUMPTION = "❌ Valor inválido. Digite um número entre 1 e 30 (ex: 12):"
INVALID_MONTHS = "❌ Valor inválido. Digite o número de parcelas (ex: 36):"


def ask_fuel_price(consumption: float) -> str:
    return (
        f"✅ {format_km(consumption)} km/litro\n\n"
        "*Quanto custa o litro de gasolina na sua região?*\n\n"
        "Digite apenas o valor (ex: 5.50):"
    )


def ask_avg_km(price: float) -> str:
    return (
        f"✅ {format_brl(price)}/litro\n\n"
        "*Quantos KM você roda em média por dia?*\n\n"
        "Digite apenas o número (ex: 150):"
    )


COMMANDS_HELP = """Comandos disponíveis:
1️⃣ *Registrar* - Registrar corrida
2️⃣ *Despesa* - Registrar despesa
3️⃣ *Resumo* - Ver resumo de hoje
4️⃣ *Meta* - Ver meta semanal
5️⃣ *Insights* - Dicas personalizadas
6️⃣ *Gráfico* - Ver gráficos

⚡ *Atalhos:*
*45 12* = corrida de R$45 e 12km
*vale 45 12* = essa corrida vale a pena?
*g80* = R$80 de combustível"""


def onboarding_complete(goal: SuggestedGoal) -> str:
    lines = [
        "🎉 *Pronto! Perfil configurado.*",
        "",
        "📊 *Seus custos estimados por dia:*",
        f"⛽ Combustível: {format_brl(goal.daily_fuel_cost)}",
        f"🔧 Manutenção: {format_brl(goal.daily_maintenance_cost)}",
    ]
    if goal.daily_depreciation_cost > 0:
        lines.append(f"📉 Depreciação: {format_brl(goal.daily_depreciation_cost)}")
    lines += [
        f"📋 Custos fixos: {format_brl(goal.daily_fixed_costs)}",
        DIVIDER,
        f"💸 *Total: {format_brl(goal.total_daily_cost)}/dia*",
        "",
        f"🎯 *Meta sugerida:* {format_brl(goal.suggested_daily_goal)}/dia "
        f"({format_brl(goal.suggested_weekly_goal)}/semana)",
        f"💰 Lucro previsto: {format_brl(goal.weekly_profit)}/semana "
        f"({format_brl(goal.monthly_profit)}/mês)",
        "",
        COMMANDS_HELP,
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Main menu
# ---------------------------------------------------------------------------

MENU_BUTTONS = [
    {"id": "registrar", "text": "🚗 Registrar corrida"},
    {"id": "despesa", "text": "⛽ Registrar despesa"},
    {"id": "resumo", "text": "📈 Ver resumo"},
    {"id": "meta", "text": "🎯 Ver meta semanal"},
]


def main_menu(name: Optional[str] = None) -> str:
    greeting = f"Olá, {name}!" if name else "Olá!"
    return f"👋 {greeting}\n\n📊 *O que deseja fazer?*"


def numbered_options(message: str, buttons: list[dict]) -> str:
    """Text rendering of a button message for gateways without buttons."""
    options = "\n".join(f"{i}. {b['text']}" for i, b in enumerate(buttons, start=1))
    return f"{message}\n\n{options}\n\nDigite o número da opção:"


# ---------------------------------------------------------------------------
# Confirmations
# ---------------------------------------------------------------------------

CONFIRM_FOOTER = "\n*Está correto?*\n\nDigite:\n✅ *sim* para salvar\n❌ *não* para cancelar"
INVALID_CONFIRMATION = "❌ Opção inválida. Digite *sim* ou *não*:"
REGISTRATION_CANCELLED = "❌ Registro cancelado."
INVALID_QUICK_TRIP = "❌ Valores inválidos. Use: VALOR KM\nExemplo: 45 12"
INVALID_QUICK_EXPENSE = (
    "❌ Valor inválido.\n\nExemplos:\ng80 → Combustível R$80\nm150 reparo freio → Manutenção R$150"
)


def confirm_quick_trip(earnings: float, km: float, fuel: Optional[float]) -> str:
    text = f"✅ *Confirme os dados:*\n\n💰 Ganho: {format_brl(earnings)}\n🚗 KM: {format_km(km)} km\n"
    if fuel:
        text += f"⛽ Combustível: {format_brl(fuel)}\n"
    return text + CONFIRM_FOOTER


def confirm_quick_expense(label: str, amount: float, note: Optional[str]) -> str:
    text = f"✅ *Confirme a despesa:*\n\n📋 Tipo: {label}\n💸 Valor: {format_brl(amount)}\n"
    if note:
        text += f"📝 Descrição: {note}\n"
    return text + CONFIRM_FOOTER


def confirm_guided_expenses(earnings: float, fuel: float, other: float, prior_expenses: float) -> str:
    profit = earnings - prior_expenses - fuel - other
    lines = [
        "📊 *RESUMO DO DIA:*",
        "",
        f"💰 Ganhos: {format_brl(earnings)}",
        f"⛽ Combustível: {format_brl(fuel)}",
    ]
    if other > 0:
        lines.append(f"💸 Outras despesas: {format_brl(other)}")
    if prior_expenses > 0:
        lines.append(f"🧾 Já registradas hoje: {format_brl(prior_expenses)}")
    lines += [DIVIDER, f"✅ Lucro: {format_brl(profit)}", "", "*Confirmar?*", "", "1 - Sim, salvar", "2 - Não, cancelar"]
    return "\n".join(lines)


def confirm_audio_trip(earnings: Optional[float], km: Optional[float]) -> str:
    text = "✅ Entendi:\n\n"
    if earnings:
        text += f"💰 Ganho: {format_brl(earnings)}\n"
    if km:
        text += f"🚗 KM rodados: {format_km(km)} km\n"
    return text + "\n*Está correto?* (sim/não)"


def confirm_audio_expense(amount: Optional[float], label: str) -> str:
    return (
        "✅ Entendi:\n\n"
        f"💸 Despesa: {format_brl(amount)}\n"
        f"📋 Tipo: {label}\n"
        "\n*Está correto?* (sim/não)"
    )


# ---------------------------------------------------------------------------
# Saved
# ---------------------------------------------------------------------------

def trip_saved(earnings: float, km: float, fuel: Optional[float]) -> str:
    text = f"✅ *Corrida salva!*\n\n💰 {format_brl(earnings)}\n🚗 {format_km(km)} km"
    if fuel:
        text += f"\n⛽ {format_brl(fuel)} combustível"
    return text + "\n\n💡 *Dica:* Digite só os números para registrar rápido!\nExemplo: 45 12"


def expense_saved(label: str, amount: float, note: Optional[str]) -> str:
    text = f"✅ *Despesa salva!*\n\n📋 {label}\n💸 {format_brl(amount)}"
    if note:
        text += f"\n📝 {note}"
    return text + "\n\n💡 *Atalhos:*\ng80 = Gasolina\nm150 reparo = Manutenção\np12 = Pedágio"


def day_registered(profit: float, cost_per_km: Optional[float], insight: Optional[str]) -> str:
    text = (
        "✅ *Dia registrado com sucesso!*\n\n"
        f"📊 *Lucro líquido:* {format_brl(profit)}\n"
        f"📈 *Custo por KM:* {format_brl(cost_per_km)}\n\n"
    )
    if insight:
        text += f"💡 *Insight do dia:*\n{insight}\n\n"
    return text + 'Digite "meta" para ver seu progresso semanal!'


# ---------------------------------------------------------------------------
# Guided registration
# ---------------------------------------------------------------------------

START_REGISTRATION = """🚗 *Registrar Corrida*

*Quanto você ganhou nesta corrida?*

Digite apenas o valor em reais (ex: 45):"""

START_EXPENSES = """⛽ *Registrar Despesas*

*Quanto gastou de combustível hoje?*

Digite o valor ou "0" se não abasteceu:"""


def ask_registration_km(earnings: float) -> str:
    return f"✅ {format_brl(earnings)}\n\n*Quantos KM rodou nesta corrida?*\n\nDigite apenas o número (ex: 12):"


def registration_trip_saved(earnings: float, km: float) -> str:
    return (
        "✅ *Corrida registrada!*\n\n"
        f"💰 Ganho: {format_brl(earnings)}\n"
        f"🚗 KM: {format_km(km)} km\n\n"
        "*O que deseja fazer agora?*\n\n"
        "1. 🚗 Registrar outra corrida\n"
        "2. ⛽ Registrar despesa (combustível, etc)\n"
        "3. 📊 Ver resumo do dia\n\n"
        "Digite o número (1, 2 ou 3):"
    )


def ask_other_expenses(fuel: float) -> str:
    return (
        f"✅ {format_brl(fuel)} de combustível\n\n"
        "*Teve outras despesas?*\n(pedágio, estacionamento, lavagem)\n\n"
        'Digite o valor total ou "0" se não teve:'
    )


INVALID_EARNINGS = "❌ Valor inválido. Digite apenas o valor (ex: 45):"
INVALID_KM = "❌ Valor inválido. Digite apenas o número de KM (ex: 12):"
INVALID_FUEL = '❌ Valor inválido. Digite o valor (ex: 70) ou "0":'
INVALID_OTHER_EXPENSES = '❌ Valor inválido. Digite o valor ou "0":'
NOTHING_TO_SAVE = "ℹ️ Nenhuma despesa informada. Nada foi salvo."

# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

def summary(insights) -> str:
    text = "📊 *RESUMO DE HOJE*\n\n"
    if insights.insights:
        text += "💡 *Insights:*\n" + "\n".join(insights.insights) + "\n\n"
    if insights.warnings:
        text += "⚠️ *Atenção:*\n" + "\n".join(insights.warnings) + "\n\n"
    if insights.tips:
        text += "💰 *Dicas:*\n" + "\n".join(insights.tips) + "\n"
    if insights.is_empty:
        text += (
            "Ainda não há dados suficientes para gerar insights.\n\n"
            'Registre seu dia primeiro! Digite "1" ou "registrar".'
        )
    return text.rstrip()


def insights_report(insights) -> str:
    m = insights.metrics
    lines = ["💡 *INSIGHTS DE HOJE*", ""]
    lines += insights.insights + insights.warnings
    if lines[-1]:
        lines.append("")
    lines += [
        "📈 *Números do dia:*",
        f"⛽ Combustível/km: {format_brl(m.get('fuel_cost_per_km'))} "
        f"(esperado {format_brl(m.get('expected_fuel_cost_per_km'))})",
        f"📊 Margem de lucro: {m.get('profit_margin', 0):.0f}%",
    ]
    if m.get("average_earnings_per_hour"):
        lines.append(f"⏱️ Ganho por hora: {format_brl(m['average_earnings_per_hour'])}")
    if insights.tips:
        lines += ["", "💰 *Dicas:*"] + insights.tips
    return "\n".join(lines)


def weekly_breakeven(result: Breakeven) -> str:
    return (
        "🎯 *META SEMANAL*\n\n"
        f"💰 *Ganhos:* {format_brl(result.weekly_earnings)}\n"
        f"💸 *Custos Fixos:* {format_brl(result.weekly_fixed_costs)}\n"
        f"⛽ *Custos Variáveis:* {format_brl(result.weekly_variable_costs)}\n"
        f"{DIVIDER}\n"
        f"📊 *Total Custos:* {format_brl(result.weekly_total_costs)}\n"
        f"✅ *Lucro:* {format_brl(result.weekly_profit)}\n\n"
        f"{result.message}"
    )


def yesterday(summary_row) -> str:
    if summary_row is None:
        return "📅 *Ontem*\n\nNenhum registro encontrado para ontem."
    return (
        "📅 *RESUMO DE ONTEM*\n\n"
        f"💰 Ganhos: {format_brl(summary_row.earnings)}\n"
        f"💸 Despesas: {format_brl(summary_row.expenses)}\n"
        f"✅ Lucro: {format_brl(summary_row.profit)}\n"
        f"🚗 KM: {format_km(summary_row.km)} km\n"
        f"📊 Custo/KM: {format_brl(summary_row.cost_per_km)}"
    )


def _short_weekday(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()][:3]


def last_week(progress) -> str:
    lines = [
        "📅 *SEMANA PASSADA*",
        "",
        f"💰 Total: {format_brl(progress.total_profit)}",
    ]
    if progress.weekly_goal:
        lines += [
            f"🎯 Meta: {format_brl(progress.weekly_goal)}",
            f"📊 Atingido: {progress.percentage_complete:.0f}%",
        ]
    lines.append(f"📅 Dias trabalhados: {progress.days_with_data}/7")
    if progress.daily_summaries:
        lines += ["", "*Detalhes por dia:*"]
        lines += [f"{_short_weekday(d.date)}: {format_brl(d.profit)}" for d in progress.daily_summaries]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Trip evaluation / pending trips
# ---------------------------------------------------------------------------

def trip_evaluation(ev: TripEvaluation) -> str:
    lines = [
        ev.message,
        "",
        f"💰 Ganho: {format_brl(ev.earnings)} | 🚗 {format_km(ev.km)} km",
        f"⛽ Combustível: {format_brl(ev.fuel_cost)}",
        f"🔧 Manutenção: {format_brl(ev.maintenance_cost)}",
    ]
    if ev.depreciation_cost > 0:
        lines.append(f"📉 Depreciação: {format_brl(ev.depreciation_cost)}")
    lines += [
        DIVIDER,
        f"✅ Lucro estimado: {format_brl(ev.profit)} ({format_brl(ev.profit_per_km)}/km)",
        "",
        "Aceitou? Ao terminar digite *ok* (ou *ok g30* se abasteceu R$ 30).",
        "Não aceitou? Digite *cancelar*.",
    ]
    return "\n".join(lines)


INVALID_EVALUATION = "❌ Valores inválidos. Use: vale VALOR KM\nExemplo: vale 45 12"
NO_PENDING_TRIP = "ℹ️ Você não tem nenhuma corrida pendente.\n\nPara registrar uma corrida digite: *45 12*"
INVALID_PENDING_FUEL = "❌ Valor inválido. Use *ok* ou *ok g30*."
FLOW_CANCELLED = "❌ Operação cancelada. Digite *menu* para ver as opções."
NOTHING_TO_CANCEL = "ℹ️ Nada para cancelar. Digite *menu* para ver as opções."


def pending_completed(earnings: float, km: float, fuel: Optional[float]) -> str:
    text = f"✅ *Corrida registrada!*\n\n💰 {format_brl(earnings)}\n🚗 {format_km(km)} km"
    if fuel:
        text += f"\n⛽ {format_brl(fuel)} combustível"
    return text


def pending_cancelled(earnings: float, km: float) -> str:
    return f"👍 Ok, corrida de {format_brl(earnings)} / {format_km(km)} km descartada."


REST_ON = (
    "😴 *Modo descanso ativado.*\n\n"
    "Não vou mandar lembretes até você voltar.\n"
    "Quando quiser, digite *voltei*."
)
REST_OFF = "🚀 *Bem-vindo de volta!* Lembretes reativados.\n\nBora rodar! Digite *45 12* para registrar."


def pending_reminder(elapsed_minutes: int, earnings: float, km: float) -> str:
    return (
        "🔔 *Lembrete*\n\n"
        f"Você avaliou uma corrida há {elapsed_minutes} min:\n\n"
        f"💰 R$ {earnings:.0f} / {km:.0f}km\n\n"
        "*O que aconteceu?*\n\n"
        "✅ *Aceitou:*\n"
        "• *ok* → Se não abasteceu\n"
        "• *ok g30* → Se abasteceu R$ 30\n"
        "  _(qualquer valor: g50, g80, etc)_\n\n"
        "❌ *Não aceitou:*\n"
        "• *cancelar* → Não aceitei a corrida\n\n"
        "😴 *Parou de trabalhar?*\n"
        "• *descanso* → Pausar lembretes"
    )


# ---------------------------------------------------------------------------
# Goal / fuel price
# ---------------------------------------------------------------------------

INVALID_GOAL = "❌ Meta inválida. Digite um valor entre 1 e 100000.\nExemplo: meta 1500"
INVALID_FUEL_PRICE = "❌ Preço inválido. Digite um valor entre 0.01 e 20.\nExemplo: preco 5.89"


def goal_updated(value: float) -> str:
    return f"🎯 Meta semanal atualizada para *{format_brl(value)}*!\n\nDigite *m* para ver seu progresso."


def fuel_price_updated(value: float) -> str:
    return f"⛽ Preço do combustível atualizado para *{format_brl(value)}/litro*."


# ---------------------------------------------------------------------------
# Charts
# ---------------------------------------------------------------------------

CHART_MENU = """📈 *Gráficos*

Digite:
• *grafico semana* → Ganhos x despesas da semana
• *grafico lucro* → Evolução do lucro
• *grafico despesas* → Despesas por tipo
• *grafico meta* → Progresso da meta"""

CHART_NO_DATA = "📈 Ainda não há dados suficientes para esse gráfico. Registre suas corridas primeiro!"
CHART_NO_GOAL = "🎯 Você ainda não tem meta semanal. Defina com: *meta 1500*"

CHART_CAPTIONS = {
    "semana": "📊 Seus últimos 7 dias",
    "lucro": "📈 Evolução do seu lucro",
    "despesas": "🧾 Suas despesas por tipo",
    "meta": "🎯 Progresso da sua meta semanal",
}


def chart_fallback(caption: str, url: str) -> str:
    return f"{caption}\n\n{url}"


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------

AUDIO_UNAVAILABLE = "❌ Desculpe, o processamento de áudio não está disponível no momento. Use texto."
AUDIO_PROCESSING = "🎤 Processando áudio..."
AUDIO_ERROR = "❌ Erro ao processar áudio. Tente enviar como texto."
AUDIO_INCOMPLETE = "⚠️ Entendi que você falou de valores, mas faltaram números. Poderia escrever? Ex: *45 12* ou *g80*"


def audio_low_confidence(transcript: str) -> str:
    return f'⚠️ Não entendi muito bem. Você disse:\n\n"{transcript}"\n\nPoderia repetir ou escrever?'


def audio_unknown(transcript: str) -> str:
    return (
        f'📝 Entendi: "{transcript}"\n\n'
        "Mas não sei como processar isso. Tente:\n\n"
        '• "Fiz uma corrida de R$ 45 e rodei 12km"\n'
        '• "Abasteci R$ 80"\n'
        '• "Quanto eu lucrei hoje?"'
    )


# ---------------------------------------------------------------------------
# Scheduled notifications
# ---------------------------------------------------------------------------

def good_morning(summary_row) -> str:
    text = "🌅 *Bom dia!*\n\n"
    if summary_row is not None:
        text += (
            "📊 *Resumo de ontem:*\n"
            f"💰 Ganhos: {format_brl(summary_row.earnings)}\n"
            f"💸 Despesas: {format_brl(summary_row.expenses)}\n"
            f"✅ Lucro: {format_brl(summary_row.profit)}\n"
            f"🚗 KM: {format_km(summary_row.km)} km\n\n"
            "💪 Bora fazer mais hoje!\n\n"
        )
    else:
        text += "Pronto para mais um dia de trabalho?\n\n"
    return text + "💡 Lembre-se de registrar suas corridas!\nDigite: *45 12* (rápido!)"


def weekly_summary(progress) -> str:
    text = "📅 *RESUMO DA SEMANA*\n\n" f"💰 Total ganho: {format_brl(progress.total_profit)}\n"
    if progress.weekly_goal:
        text += (
            f"🎯 Meta semanal: {format_brl(progress.weekly_goal)}\n"
            f"📊 Atingido: {progress.percentage_complete:.0f}%\n\n"
        )
        if progress.percentage_complete >= 100:
            text += "🎉 *PARABÉNS!* Você bateu a meta!\n\n"
        elif progress.percentage_complete >= 80:
            text += f"👏 *Quase lá!* Falta só {format_brl(progress.remaining_to_goal)}\n\n"
        else:
            text += f"💪 Continue firme! Faltam {format_brl(progress.remaining_to_goal)}\n\n"
    else:
        text += (
            "⚠️ *Meta não definida*\n\n"
            "💡 *Dica:* Configure sua meta para ter melhor controle!\n"
            "Digite *meta 1500* para definir.\n\n"
        )
    return text + f"Dias trabalhados: {progress.days_with_data}/7\n\nÓtimo final de semana! 🚀"


REGISTRATION_REMINDER = (
    "👋 Oi!\n\n"
    "Lembra de registrar suas corridas de hoje? 😊\n\n"
    "É rapidinho:\n"
    "*45 12* = R$45 e 12km\n\n"
    "Ou digite *registrar* para o passo a passo!"
)


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------

EXPENSE_LABELS = {
    ExpenseType.FUEL.value: "Combustível",
    ExpenseType.MAINTENANCE_PREVENTIVE.value: "Manutenção preventiva",
    ExpenseType.MAINTENANCE_CORRECTIVE.value: "Manutenção",
    ExpenseType.TIRES.value: "Pneus",
    ExpenseType.CLEANING.value: "Lavagem",
    ExpenseType.TOLL.value: "Pedágio",
    ExpenseType.PARKING.value: "Estacionamento",
    ExpenseType.PLATFORM_FEE.value: "Taxa da plataforma",
    ExpenseType.OTHER.value: "Outros",
}


def expense_label(expense_type) -> str:
    key = expense_type.value if isinstance(expense_type, ExpenseType) else expense_type
    return EXPENSE_LABELS.get(key, "Outros")
