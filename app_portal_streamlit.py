import logging
import time
from datetime import date, datetime, timedelta

import pandas as pd
import plotly.express as px
import streamlit as st
from pydantic import ValidationError

from portal.bootstrap import Services, build_services
from portal.config import configure_logging, load_settings
from portal.errors import DuplicateStockItem, PortalError, RejectionReasonRequired, ReservationConflict
from portal.models.equipment import Equipment
from portal.models.notice import NoticeData, NoticeImage
from portal.models.request import PurchaseData, ReservationData, SupportData
from portal.models.stock import CATEGORIES, CONDITIONS, LOCATIONS_BY_UNIT, StockItem
from portal.services import metrics, status_machine
from portal.services.unread_tracker import UnreadTracker

logger = logging.getLogger(__name__)

# --- CONFIGURAÇÃO DA PÁGINA ---
st.set_page_config(page_title="Portal Escolar", layout="wide")

SESSION_TIMEOUT_MINUTES = 60

PAGES = [
    ("📊 Dashboard", "dashboard"),
    ("🏠 Início", "userdashboard"),
    ("📋 Solicitações", "solicitacoes"),
    ("🙋 Minhas Solicitações", "user-solicitacoes"),
    ("📅 Nova Reserva", "nova-reserva"),
    ("🛒 Nova Compra", "nova-compra"),
    ("🛠️ Novo Chamado", "nova-suporte"),
    ("💰 Compras (Financeiro)", "compras-financeiro"),
    ("📚 Compras (Pedagógico)", "compras-pedagogico"),
    ("🔧 Suporte (Operacional)", "suporte-operacional"),
    ("🗓️ Calendário de Reservas", "calendario-reservas"),
    ("💻 Equipamentos", "equipamentos"),
    ("📦 Estoque", "estoque"),
    ("📆 Disponibilidade", "disponibilidade"),
    ("📣 Enviar Notificações", "notificacoes-envio"),
    ("👥 Usuários", "usuarios"),
    ("📌 Mural de Avisos", "notice-board-edit"),
]

TYPE_ICONS = {"reservation": "📅", "purchase": "🛒", "support": "🛠️"}


def format_brazilian_currency(value: float) -> str:
    return f"R$ {value:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def format_datetime(value) -> str:
    return value.strftime('%d/%m/%Y %H:%M') if value else "-"


def request_title(request) -> str:
    if request.type == "reservation":
        names = ", ".join(request.equipment_names) or "Equipamento"
        return f"Reserva: {names} em {date.fromisoformat(request.date).strftime('%d/%m/%Y')} " \
               f"{request.start_time}-{request.end_time}"
    if request.type == "purchase":
        return f"Compra: {request.item_name} ({request.quantity}x) | {request.tipo}"
    return f"Suporte: {request.category} - {request.unit}"


# -----------------------------------------------------------------------------
# UI / VIEWS (LÓGICA DE APRESENTAÇÃO)
# -----------------------------------------------------------------------------

class ViewManager:
    def __init__(self, services: Services):
        self.services = services
        self._init_session_state()

    def _init_session_state(self):
        defaults = {'user': None, 'page': "Login", 'show_notifications': False, 'open_request': None,
                    'reject_request': None, 'confirm_delete': {}, 'last_activity': time.time(),
                    'last_conflicts': [], 'stock_duplicate': None}
        for key, value in defaults.items():
            if key not in st.session_state: st.session_state[key] = value

    @property
    def user(self):
        return st.session_state.user

    def can(self, permission: str) -> bool:
        return self.services.permissions.has_permission(self.user, permission)

    def run(self):
        if self.user is None:
            self.render_login_page()
        else:
            self.check_session_timeout()
            self.services.outbox.drain()
            self.render_main_app()

    def check_session_timeout(self):
        if time.time() - st.session_state.last_activity > SESSION_TIMEOUT_MINUTES * 60:
            for key in list(st.session_state.keys()): del st.session_state[key]
            st.warning("Sessão expirada. Faça login novamente.")
            time.sleep(3)
            st.rerun()
        st.session_state.last_activity = time.time()

    # --- Login / Registro ---

    def render_login_page(self):
        _, col2, _ = st.columns([1, 2, 1])
        with col2:
            st.markdown("<h1 style='text-align: center;'>🏫 Portal Escolar</h1>", unsafe_allow_html=True)
            if st.session_state.page == "Login":
                self._render_login_form()
                if st.button("Não tem conta? Registre-se"): st.session_state.page = "Registro"; st.rerun()
            else:
                self._render_registration_form()
                if st.button("Já tem conta? Faça login"): st.session_state.page = "Login"; st.rerun()

    def _render_login_form(self):
        st.title("🔐 Login")
        with st.form("login_form"):
            email, password = st.text_input("E-mail"), st.text_input("Senha", type="password")
            if st.form_submit_button("Entrar", type="primary"):
                try:
                    st.session_state.user = self.services.auth.login(email, password)
                    st.session_state.page = None
                    st.rerun()
                except PortalError as e:
                    st.error(str(e))

    def _render_registration_form(self):
        st.title("📝 Registro de Novo Usuário")
        with st.form("registration_form"):
            display_name = st.text_input("Nome")
            email = st.text_input("E-mail")
            password = st.text_input("Senha", type="password")
            if st.form_submit_button("Registrar", type="primary"):
                try:
                    self.services.auth.register_user(email, display_name, password)
                    st.success("Registro realizado! Faça login para continuar.")
                    st.session_state.page = "Login"
                except PortalError as e:
                    st.error(str(e))
                except ValidationError as e:
                    st.error(f"Dados inválidos: {e.errors()[0]['msg']}")

    # --- Estrutura principal ---

    def render_main_app(self):
        pages = [(label, perm) for label, perm in PAGES if self.can(perm)]
        selected = self.render_sidebar(pages)
        col1, col2 = st.columns([0.8, 0.2])
        with col1:
            st.title("🏫 Portal Escolar")
        with col2:
            self.render_notification_bell()

        if st.session_state.get('show_notifications', False): self.render_notifications_modal()
        if st.session_state.reject_request: self.render_reject_modal()
        if st.session_state.stock_duplicate: self.render_stock_duplicate_modal()

        self.render_notice_board()
        renderers = {
            "dashboard": self.render_dashboard,
            "userdashboard": self.render_user_dashboard,
            "solicitacoes": lambda: self.render_request_admin(None, "solicitacoes"),
            "user-solicitacoes": self.render_my_requests,
            "nova-reserva": self.render_new_reservation,
            "nova-compra": self.render_new_purchase,
            "nova-suporte": self.render_new_support,
            "compras-financeiro": lambda: self.render_request_admin("purchase", "financeiro"),
            "compras-pedagogico": lambda: self.render_request_admin("purchase", "pedagogico"),
            "suporte-operacional": lambda: self.render_request_admin("support", "operacional"),
            "calendario-reservas": self.render_reservation_calendar,
            "equipamentos": self.render_equipment,
            "estoque": self.render_stock,
            "disponibilidade": self.render_availability,
            "notificacoes-envio": self.render_send_notifications,
            "usuarios": self.render_users,
            "notice-board-edit": self.render_notice_admin,
        }
        if selected:
            try:
                renderers[selected]()
            except PortalError as e:
                st.error(str(e))

    def render_sidebar(self, pages):
        with st.sidebar:
            st.write(f"👤 **{self.user.display_name}** ({self.user.role})")
            st.caption(self.user.email)
            if st.button("Logout", use_container_width=True):
                for key in list(st.session_state.keys()): del st.session_state[key]
                st.rerun()
            st.divider()
            if not pages:
                st.info("Seu cargo não tem páginas liberadas.")
                return None
            labels = [label for label, _ in pages]
            choice = st.radio("Navegação", labels, label_visibility="collapsed")
            return dict(pages)[choice]

    # --- Notificações ---

    def render_notification_bell(self):
        notifications = self.services.notifications.get_for_user(self.user.email)
        st.session_state.notifications = notifications
        unread = self.services.notifications.unread_count(notifications, self.user.email)
        label = f"🔔 ({unread})" if unread > 0 else "🔔"
        if st.button(label, help="Ver notificações"): st.session_state.show_notifications = not st.session_state.get(
            'show_notifications', False); st.rerun()

    @st.dialog("🔔 Notificações")
    def render_notifications_modal(self):
        notifications = st.session_state.get('notifications', [])
        if not notifications:
            st.info("Nenhuma notificação.")
        for n in notifications:
            read = n.is_read_by(self.user.email)
            with st.container(border=True):
                st.markdown(f"{'' if read else '🔵 '}**{n.title}**  \n{n.message}")
                st.caption(format_datetime(n.created_at))
                if not read and st.button("Marcar como lida", key=f"read_{n.id}"):
                    self.services.notifications.mark_read(n.id, self.user.email); st.rerun()
        c1, c2 = st.columns(2)
        if c1.button("Marcar todas como lidas", disabled=not notifications):
            self.services.notifications.mark_all_read(notifications, self.user.email); st.rerun()
        if c2.button("Fechar", key="close_notifications"): st.session_state.show_notifications = False; st.rerun()

    def render_send_notifications(self):
        st.header("📣 Enviar Notificações")
        users = self.services.auth.get_all_users()
        with st.form("send_notification_form", clear_on_submit=True):
            title = st.text_input("Título")
            message = st.text_area("Mensagem")
            link = st.text_input("Link (opcional)")
            recipients = st.multiselect("Destinatários (vazio = todos)", [u.email for u in users])
            if st.form_submit_button("Enviar", type="primary"):
                try:
                    self.services.notifications.send(self.user, title, message, recipients, link)
                    st.toast("Notificação enviada!", icon="✅")
                except ValidationError as e:
                    st.error(f"Dados inválidos: {e.errors()[0]['msg']}")
                except PortalError as e:
                    st.error(str(e))

        st.subheader("Histórico")
        c1, c2 = st.columns([1, 2])
        kinds = {"Todas": "all", "Globais": "global", "Individuais": "individual", "Status": "status"}
        kind = c1.selectbox("Tipo", list(kinds))
        search = c2.text_input("Buscar")
        for n in self.services.notifications.get_all(kinds[kind], search):
            with st.container(border=True):
                scope = "Todos" if n.is_global else ", ".join(n.recipients)
                st.markdown(f"**{n.title}** · {format_datetime(n.created_at)}  \n{n.message}")
                st.caption(f"Para: {scope} | Lida por {len(n.read_by)}")
                if st.button("🗑️", key=f"del_notif_{n.id}", help="Excluir"):
                    self.services.notifications.delete(n.id); st.rerun()

    # --- Mural de avisos ---

    def render_notice_board(self):
        notices = self.services.notices.get_active_notices()
        now = datetime.now().astimezone()
        for notice in [n for n in notices if not n.is_expired(now)]:
            box = st.error if notice.priority == "high" else st.info
            if notice.type == "image" and notice.image_url:
                st.image(notice.image_url, caption=notice.title)
            else:
                box(f"**{notice.title}**\n\n{notice.content}")

    def render_notice_admin(self):
        st.header("📌 Mural de Avisos")
        expired = self.services.notices.cleanup_expired()
        if expired: st.toast(f"{expired} aviso(s) expirado(s) desativado(s).")
        with st.expander("➕ Novo Aviso"):
            with st.form("notice_form", clear_on_submit=True):
                notice_type = st.selectbox("Tipo", ["text", "image"], format_func=lambda t: "Texto" if t == "text" else "Imagem")
                title = st.text_input("Título")
                content = st.text_area("Conteúdo")
                priority = st.selectbox("Prioridade", ["low", "medium", "high"], index=1)
                expires = st.date_input("Expira em (opcional)", value=None)
                upload = st.file_uploader("Imagem", type=["png", "jpg", "jpeg", "gif"])
                if st.form_submit_button("Publicar", type="primary"):
                    try:
                        expires_at = datetime.combine(expires, datetime.max.time()).astimezone() if expires else None
                        data = NoticeData(type=notice_type, title=title, content=content, priority=priority,
                                          expires_at=expires_at)
                        image = NoticeImage(file_name=upload.name, content_type=upload.type,
                                            data=upload.getvalue()) if upload else None
                        self.services.notices.create_notice(self.user, data, image)
                        st.toast("Aviso publicado!", icon="✅")
                    except ValidationError as e:
                        st.error(f"Dados inválidos: {e.errors()[0]['msg']}")

        for notice in self.services.notices.get_all_notices():
            with st.container(border=True):
                state = "🟢 Ativo" if notice.is_active else "⚪ Inativo"
                st.markdown(f"**{notice.title}** · {state} · prioridade `{notice.priority}`")
                c1, c2, _ = st.columns([1, 1, 6])
                if notice.is_active and c1.button("Desativar", key=f"deact_{notice.id}"):
                    self.services.notices.deactivate_notice(self.user, notice.id); st.rerun()
                if c2.button("🗑️", key=f"del_notice_{notice.id}", help="Excluir"):
                    self.services.notices.delete_notice(self.user, notice.id); st.rerun()

    # --- Dashboards ---

    def render_dashboard(self):
        st.header("Dashboard de Métricas")
        requests = self.services.requests.get_all(include_hidden=True)
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Total de Solicitações", f"{len(requests)} 📋")
        c2.metric("Pendentes", sum(1 for r in requests if r.status == "pending"))
        c3.metric("Reservas", sum(1 for r in requests if r.type == "reservation"))
        total_compras = sum(r.quantity * r.unit_price for r in requests if r.type == "purchase")
        c4.metric("Valor em Compras", format_brazilian_currency(total_compras))
        st.divider()
        c1, c2 = st.columns(2)
        with c1:
            st.subheader("Status das Solicitações")
            df = metrics.status_distribution(requests)
            if not df.empty:
                st.plotly_chart(px.bar(df, x='label', y='count', title="Distribuição de Status", text_auto=True,
                                       color='label', labels={'label': 'Status', 'count': 'Quantidade'}),
                                use_container_width=True)
            else:
                st.info("Nenhuma solicitação para exibir.")
        with c2:
            st.subheader("Solicitações por Tipo")
            df = metrics.requests_by_type(requests)
            if not df.empty:
                st.plotly_chart(px.pie(df, names='label', values='count', title="Distribuição por Tipo", hole=.3),
                                use_container_width=True)
            else:
                st.info("Nenhuma solicitação para exibir.")
        c1, c2 = st.columns(2)
        with c1:
            st.subheader("Equipamentos mais reservados")
            usage = metrics.equipment_usage(requests, self.services.equipment.get_all())
            if not usage.empty:
                st.plotly_chart(px.bar(usage.head(10), x='name', y='count', text_auto=True,
                                       labels={'name': 'Equipamento', 'count': 'Reservas'}), use_container_width=True)
            else:
                st.info("Nenhuma reserva registrada.")
        with c2:
            st.subheader("Maiores solicitantes")
            st.dataframe(metrics.top_requesters(requests), use_container_width=True, hide_index=True)

    def render_user_dashboard(self):
        st.header(f"Olá, {self.user.display_name}!")
        mine = self.services.requests.get_for_user(self.user.email)
        tracker = self._tracker("user")
        c1, c2, c3 = st.columns(3)
        c1.metric("Minhas solicitações", len(mine))
        c2.metric("Em aberto", sum(1 for r in mine if r.status not in status_machine.CLOSED_STATUSES))
        c3.metric("Mensagens não lidas", tracker.total_unread(mine))

    # --- Solicitações ---

    def _tracker(self, view: str) -> UnreadTracker:
        key = f"tracker_{self.user.uid}_{view}"
        if key not in st.session_state:
            st.session_state[key] = UnreadTracker(self.services.settings.unread_state_dir, self.user.uid, view)
        else:
            st.session_state[key].refresh()
        return st.session_state[key]

    def _render_paginated_rows(self, items, render_function, key_suffix: str, **kwargs):
        if not items:
            st.info("Nenhum dado encontrado.")
            return

        items_per_page = st.selectbox("Itens por página", [5, 10, 20], key=f"items_{key_suffix}", index=1)
        total_pages = max(1, (len(items) - 1) // items_per_page + 1)
        page_key = f"page_{key_suffix}"
        if page_key not in st.session_state:
            st.session_state[page_key] = 1
        st.session_state[page_key] = min(st.session_state[page_key], total_pages)

        c1, c2, c3 = st.columns([1, 2, 1])
        if c1.button("⬅️", key=f"prev_{key_suffix}", disabled=(st.session_state[page_key] <= 1)):
            st.session_state[page_key] -= 1
            st.rerun()
        if c3.button("➡️", key=f"next_{key_suffix}", disabled=(st.session_state[page_key] >= total_pages)):
            st.session_state[page_key] += 1
            st.rerun()

        c2.write(f"Página **{st.session_state[page_key]}** de **{total_pages}**")
        start_idx = (st.session_state[page_key] - 1) * items_per_page
        for item in items[start_idx: start_idx + items_per_page]:
            render_function(item, **kwargs)

    def render_my_requests(self):
        st.header("🙋 Minhas Solicitações")
        requests = self.services.requests.get_for_user(self.user.email)
        self._render_paginated_rows(requests, self.render_request_row, "mine", view="user", staff=False)

    def render_request_admin(self, request_type, view: str):
        st.header("📋 Gerenciar Solicitações")
        c1, c2 = st.columns([1, 3])
        include_hidden = c1.toggle("Mostrar arquivadas")
        requests = self.services.requests.get_all(include_hidden=include_hidden)
        if request_type:
            requests = [r for r in requests if r.type == request_type]
        if view == "pedagogico":
            requests = [r for r in requests if r.tipo == "Pedagógico"]
        elif view == "financeiro":
            requests = [r for r in requests if r.tipo != "Pedagógico" or r.financeiro_visible]
        statuses = sorted({r.status for r in requests})
        chosen = c2.multiselect("Status", statuses, format_func=lambda s: status_machine.STATUS_LABELS.get(s, s))
        if chosen:
            requests = [r for r in requests if r.status in chosen]
        self._render_paginated_rows(requests, self.render_request_row, f"admin_{view}", view=view, staff=True)

    def render_request_row(self, request, view: str, staff: bool):
        tracker = self._tracker(view)
        key = f"{request.collection_name}_{request.id}"
        unread = tracker.count_unread(request)
        badge = " 🆕" if staff and tracker.is_new_request(request) else ""
        badge += f" 💬 {unread}" if unread else ""
        with st.container(border=True):
            st.markdown(f"{TYPE_ICONS[request.type]} **{request_title(request)}**{badge}\n\n"
                        f"**Status:** `{status_machine.STATUS_LABELS.get(request.status, request.status)}` | "
                        f"**Solicitante:** `{request.user_name}` em `{format_datetime(request.created_at)}`")
            if request.type == "purchase" and request.rejection_reason:
                st.warning(f"Motivo da reprovação: {request.rejection_reason}")

            cols = st.columns([2, 1, 1, 1, 4])
            if staff:
                targets = sorted(status_machine.allowed_targets(request.type, request.status))
                if targets:
                    target = cols[0].selectbox("Novo status", targets, key=f"status_{key}", index=None,
                                               format_func=lambda s: status_machine.STATUS_LABELS.get(s, s),
                                               label_visibility="collapsed", placeholder="Alterar status")
                    if cols[4].button("Aplicar", key=f"apply_{key}", disabled=target is None):
                        self.handle_status_change(request, target)
                if cols[1].button("🗄️", key=f"hide_{key}", help="Arquivar/Desarquivar"):
                    self.services.requests.set_hidden(self.user, request.id, request.collection_name,
                                                      not request.hidden); st.rerun()
                if cols[2].button("🗑️", key=f"del_{key}", help="Excluir"):
                    st.session_state.confirm_delete = {'collection': request.collection_name, 'id': request.id}
                    st.rerun()
            elif request.status not in status_machine.TERMINAL_STATUSES:
                if cols[0].button("Cancelar", key=f"cancel_{key}"):
                    self.services.requests.cancel(self.user, request.id, request.collection_name); st.rerun()

            if cols[3].button("💬", key=f"chat_{key}", help="Mensagens"):
                st.session_state.open_request = None if st.session_state.open_request == key else key
                tracker.mark_request_viewed(request)
                st.rerun()
            if st.session_state.open_request == key:
                self.render_chat(request, staff)

            if st.session_state.confirm_delete.get('id') == request.id:
                st.warning("Excluir esta solicitação?")
                c1, c2, _ = st.columns([1, 1, 8])
                if c1.button("Sim, excluir", key=f"conf_del_{key}", type="primary"):
                    self.services.requests.delete(self.user, request.id, request.collection_name)
                    st.session_state.confirm_delete = {}; st.rerun()
                if c2.button("Cancelar", key=f"canc_del_{key}"): st.session_state.confirm_delete = {}; st.rerun()

    def handle_status_change(self, request, target: str):
        if request.type == "purchase" and target == "rejected":
            st.session_state.reject_request = {'id': request.id, 'collection': request.collection_name}
            st.rerun()
        self.services.requests.update_status(self.user, request.id, request.collection_name, target)
        st.toast("Status atualizado!", icon="✅")
        st.rerun()

    @st.dialog("Motivo da reprovação")
    def render_reject_modal(self):
        info = st.session_state.reject_request
        reason = st.text_area("Explique por que a compra foi reprovada")
        c1, c2 = st.columns(2)
        if c1.button("Confirmar", type="primary"):
            try:
                self.services.requests.update_status(self.user, info['id'], info['collection'], "rejected", reason)
                st.session_state.reject_request = None
                st.rerun()
            except RejectionReasonRequired as e:
                st.error(str(e))
        if c2.button("Cancelar"): st.session_state.reject_request = None; st.rerun()

    def render_chat(self, request, staff: bool):
        for msg in request.messages:
            with st.chat_message("assistant" if msg.is_admin else "user"):
                st.markdown(f"**{msg.user_name}** · {format_datetime(msg.timestamp)}\n\n{msg.message}")
        with st.form(f"chat_form_{request.id}", clear_on_submit=True):
            text = st.text_input("Mensagem")
            if st.form_submit_button("Enviar") and text.strip():
                self.services.requests.append_message(self.user, request.id, request.collection_name, text, staff)
                st.rerun()

    # --- Formulários de criação ---

    def render_new_reservation(self):
        st.header("📅 Nova Reserva")
        dates = self.services.availability.get_available_dates()
        equipment = self.services.equipment.get_reservable()
        if not dates:
            st.info("Nenhuma data liberada para reservas no momento.")
            return
        with st.form("reservation_form"):
            day = st.selectbox("Data", dates, format_func=lambda d: d.strftime('%d/%m/%Y'))
            c1, c2 = st.columns(2)
            start = c1.time_input("Início", value=datetime.strptime("07:00", "%H:%M").time(), step=timedelta(minutes=15))
            end = c2.time_input("Fim", value=datetime.strptime("08:00", "%H:%M").time(), step=timedelta(minutes=15))
            names = {e.id: f"{e.name} ({e.type})" for e in equipment}
            equipment_ids = st.multiselect("Equipamentos", list(names), format_func=names.get)
            location = st.text_input("Local")
            purpose = st.text_area("Finalidade")
            if st.form_submit_button("Reservar", type="primary"):
                try:
                    data = ReservationData(date=day, start_time=start.strftime("%H:%M"), end_time=end.strftime("%H:%M"),
                                           equipment_ids=equipment_ids, location=location, purpose=purpose)
                    self.services.reservations.create_reservation(self.user, data)
                    st.session_state.last_conflicts = []
                    st.success("Reserva registrada!")
                except ReservationConflict as e:
                    st.session_state.last_conflicts = e.conflicts
                    st.error(str(e))
                except ValidationError as e:
                    st.error(f"Dados inválidos: {e.errors()[0]['msg']}")
                except PortalError as e:
                    st.error(str(e))
        if st.session_state.last_conflicts:
            st.dataframe(pd.DataFrame([c.model_dump() for c in st.session_state.last_conflicts]).rename(columns={
                'equipment_name': 'Equipamento', 'start_time': 'Início', 'end_time': 'Fim'})[
                ['Equipamento', 'Início', 'Fim']], hide_index=True)

    def render_new_purchase(self):
        st.header("🛒 Nova Solicitação de Compra")
        with st.form("purchase_form", clear_on_submit=True):
            item_name = st.text_input("Item")
            c1, c2, c3 = st.columns(3)
            quantity = c1.number_input("Quantidade", min_value=1, step=1)
            unit_price = c2.number_input("Valor unitário (R$)", min_value=0.0, step=0.5)
            tipo = c3.selectbox("Tipo", ["Pedagógico", "Administrativo", "Financeiro"])
            urgency = st.selectbox("Urgência", ["normal", "alta", "baixa"])
            justification = st.text_area("Justificativa")
            if st.form_submit_button("Solicitar", type="primary"):
                try:
                    data = PurchaseData(item_name=item_name, quantity=int(quantity), unit_price=unit_price,
                                        urgency=urgency, justification=justification, tipo=tipo)
                    self.services.requests.create(self.user, data)
                    st.success("Solicitação de compra enviada!")
                except ValidationError as e:
                    st.error(f"Dados inválidos: {e.errors()[0]['msg']}")

    def render_new_support(self):
        st.header("🛠️ Novo Chamado de Suporte")
        with st.form("support_form", clear_on_submit=True):
            c1, c2 = st.columns(2)
            unit = c1.text_input("Unidade")
            location = c2.text_input("Local")
            category = st.selectbox("Categoria", ["Computador", "Impressora", "Rede", "Projetor", "Outro"])
            priority = st.selectbox("Prioridade", ["baixa", "media", "alta"], index=1)
            device_info = st.text_input("Equipamento / patrimônio")
            description = st.text_area("Descrição do problema")
            if st.form_submit_button("Abrir chamado", type="primary"):
                try:
                    data = SupportData(unit=unit, location=location, category=category, priority=priority,
                                       device_info=device_info, description=description)
                    self.services.requests.create(self.user, data)
                    st.success("Chamado aberto!")
                except ValidationError as e:
                    st.error(f"Dados inválidos: {e.errors()[0]['msg']}")

    # --- Administração ---

    def render_reservation_calendar(self):
        st.header("🗓️ Calendário de Reservas")
        day = st.date_input("Dia", value=date.today(), format="DD/MM/YYYY")
        reservations = self.services.checker.reservations_on(day)
        if not reservations:
            st.info("Nenhuma reserva neste dia.")
            return
        df = pd.DataFrame([{
            "Início": r.start_time, "Fim": r.end_time, "Equipamentos": ", ".join(r.equipment_names),
            "Solicitante": r.user_name, "Local": r.location,
            "Status": status_machine.STATUS_LABELS.get(r.status, r.status),
        } for r in reservations])
        st.dataframe(df, use_container_width=True, hide_index=True)

    def render_equipment(self):
        st.header("💻 Equipamentos")
        with st.expander("➕ Cadastrar Equipamento"):
            with st.form("equipment_form", clear_on_submit=True):
                name = st.text_input("Nome")
                kind = st.text_input("Tipo (ex.: Notebook, iPad, Projetor)")
                location = st.text_input("Local")
                serial_number = st.text_input("Número de série")
                reservable = st.checkbox("Disponível para reserva", value=True)
                if st.form_submit_button("Salvar", type="primary"):
                    try:
                        self.services.equipment.add_equipment(self.user, Equipment(
                            name=name, type=kind, location=location or None, serial_number=serial_number or None,
                            is_available_for_reservation=reservable))
                        st.toast("Equipamento cadastrado!", icon="✅")
                    except ValidationError as e:
                        st.error(f"Dados inválidos: {e.errors()[0]['msg']}")

        kind_filter = st.text_input("Filtrar por tipo")
        items = self.services.equipment.filter_by_type(kind_filter) if kind_filter else self.services.equipment.get_all()
        for item in items:
            with st.container(border=True):
                c1, c2, c3, c4 = st.columns([4, 2, 1, 1])
                c1.markdown(f"**{item.name}** ({item.type}) · `{item.status}`")
                reservable = c2.toggle("Reservável", value=item.is_available_for_reservation, key=f"res_{item.id}")
                if reservable != item.is_available_for_reservation:
                    self.services.equipment.update(self.user, item.id, is_available_for_reservation=reservable)
                    st.rerun()
                status = c3.selectbox("Status", ["disponível", "em uso", "em manutenção"], key=f"st_{item.id}",
                                      index=["disponível", "em uso", "em manutenção"].index(item.status),
                                      label_visibility="collapsed")
                if status != item.status:
                    self.services.equipment.update(self.user, item.id, status=status); st.rerun()
                if c4.button("🗑️", key=f"del_eq_{item.id}", help="Excluir"):
                    self.services.equipment.delete(self.user, item.id); st.rerun()

    def _stock_form(self, key: str, item=None):
        """Campos do cadastro/edição de um item; devolve o StockItem ou None se o formulário não foi enviado."""
        item = item or StockItem.model_construct(name="", quantity=1, category="TI", unit="", location="",
                                                 condition="Bom")
        units = list(LOCATIONS_BY_UNIT)
        # Fora do formulário para que a lista de localizações acompanhe a unidade escolhida.
        unit = st.selectbox("Unidade", units, index=units.index(item.unit) if item.unit in units else 0,
                            key=f"{key}_unit")
        locations = LOCATIONS_BY_UNIT[unit]
        with st.form(key, clear_on_submit=item.id is None):
            c1, c2 = st.columns(2)
            name = c1.text_input("Nome", value=item.name)
            quantity = c2.number_input("Quantidade", min_value=1, step=1, value=item.quantity)
            category = c1.selectbox("Categoria", CATEGORIES, index=CATEGORIES.index(item.category))
            condition = c2.selectbox("Estado", CONDITIONS, index=CONDITIONS.index(item.condition))
            location = c1.selectbox("Localização", locations,
                                    index=locations.index(item.location) if item.location in locations else 0)
            unit_value = c2.number_input("Valor unitário (R$)", min_value=0.0, step=0.01,
                                         value=float(item.unit_value or 0))
            responsible = st.text_input("Responsável", value=item.responsible or "")
            description = st.text_area("Descrição", value=item.description or "")
            c3, c4, c5 = st.columns(3)
            invoice = c3.text_input("Nota fiscal", value=item.invoice_number or "")
            order = c4.text_input("Número do pedido", value=item.order_number or "")
            received = c5.date_input("Data de recebimento", format="DD/MM/YYYY",
                                     value=date.fromisoformat(item.received_on) if item.received_on else None)
            if not st.form_submit_button("Salvar", type="primary"):
                return None
        return StockItem(name=name, quantity=int(quantity), category=category, condition=condition, unit=unit,
                         location=location, unit_value=unit_value or None, responsible=responsible or None,
                         description=description or None, invoice_number=invoice or None,
                         order_number=order or None, received_on=received)

    def render_stock(self):
        st.header("📦 Controle de Estoque")
        stock = self.services.stock
        with st.expander("➕ Cadastrar Item"):
            try:
                new_item = self._stock_form("stock_form")
                if new_item is not None:
                    stock.add_item(self.user, new_item)
                    st.toast("Item adicionado com sucesso", icon="✅")
            except DuplicateStockItem as e:
                st.session_state.stock_duplicate = {'item': new_item, 'existing': e.existing}
                st.rerun()
            except ValidationError as e:
                st.error(f"Dados inválidos: {e.errors()[0]['msg']}")

        with st.expander("📚 Cadastrar Vários Itens"):
            unit = st.selectbox("Unidade", list(LOCATIONS_BY_UNIT), key="stock_series_unit")
            with st.form("stock_series_form", clear_on_submit=True):
                base_name = st.text_input("Nome base (ex.: Cadeira)")
                count = st.number_input("Quantidade de itens", min_value=1, step=1, value=1)
                c1, c2 = st.columns(2)
                category = c1.selectbox("Categoria", CATEGORIES)
                condition = c2.selectbox("Estado", CONDITIONS, index=CONDITIONS.index("Bom"))
                location = st.selectbox("Localização", LOCATIONS_BY_UNIT[unit])
                if st.form_submit_button("Cadastrar", type="primary"):
                    try:
                        ids = stock.add_series(self.user, base_name, int(count), category, unit, location, condition)
                        st.toast(f"{len(ids)} itens adicionados com sucesso", icon="✅")
                    except ValueError as e:
                        st.error(str(e))

        items = stock.get_all()
        c1, c2, c3 = st.columns(3)
        text = c1.text_input("Filtrar por Nome ou Descrição", placeholder="Digite um termo...")
        category = c2.selectbox("Filtrar por Categoria", ["", *CATEGORIES],
                                format_func=lambda c: c or "Todas categorias")
        location = c3.selectbox("Filtrar por Localização", ["", *stock.locations_in_use(items)],
                                format_func=lambda loc: loc or "Todas localizações")
        filtered = stock.filter(items, category=category, location=location, text=text)
        if not filtered:
            st.info("Nenhum item encontrado.")
            return

        df = pd.DataFrame([{
            "Nome": i.name, "Quantidade": i.quantity, "Categoria": i.category, "Unidade": i.unit,
            "Localização": i.location, "Estado": i.condition,
            "Valor unitário": format_brazilian_currency(i.unit_value) if i.unit_value is not None else "Não informado",
            "Valor total": format_brazilian_currency(i.total_value),
        } for i in filtered])
        st.dataframe(df, use_container_width=True, hide_index=True)
        st.metric("Valor total em estoque", format_brazilian_currency(sum(i.total_value for i in filtered)))

        by_label = {f"{i.name} · {i.location}": i for i in filtered}
        selected = st.selectbox("Item", list(by_label), index=None, placeholder="Selecione para editar ou excluir")
        if selected:
            item = by_label[selected]
            try:
                edited = self._stock_form(f"stock_edit_{item.id}", item)
                if edited is not None:
                    stock.update(self.user, item.id, **edited.model_dump(exclude={"id", "created_at"}))
                    st.toast("Item atualizado com sucesso", icon="✅"); st.rerun()
            except ValidationError as e:
                st.error(f"Dados inválidos: {e.errors()[0]['msg']}")
            if st.button("🗑️ Excluir item", key=f"del_stock_{item.id}"):
                stock.delete(self.user, item.id)
                st.toast("Item removido com sucesso", icon="✅"); st.rerun()
        to_delete = st.multiselect("Excluir em lote", list(by_label))
        if st.button("Excluir selecionados", disabled=not to_delete):
            stock.delete_many(self.user, [by_label[label].id for label in to_delete]); st.rerun()

    @st.dialog("Item já existe")
    def render_stock_duplicate_modal(self):
        info = st.session_state.stock_duplicate
        st.write(f"Um item com o nome \"{info['existing'].name}\" já está cadastrado no estoque.")
        st.write("Você quer:")
        c1, c2 = st.columns(2)
        if c1.button("Criar Novo Item"):
            self.services.stock.add_item(self.user, info['item'], allow_duplicate=True)
            st.session_state.stock_duplicate = None
            st.rerun()
        if c2.button("Editar Item Existente", type="primary"):
            st.session_state.stock_duplicate = None
            st.toast(f"Selecione \"{info['existing'].name}\" na lista para editar.", icon="✏️")
            st.rerun()

    def render_availability(self):
        st.header("📆 Datas Disponíveis para Reserva")
        dates = self.services.availability.get_available_dates()
        with st.form("availability_form"):
            today = self.services.availability.today()
            period = st.date_input("Período a liberar", value=(today, today + timedelta(days=6)), min_value=today,
                                   format="DD/MM/YYYY")
            weekdays_only = st.checkbox("Somente dias úteis", value=True)
            if st.form_submit_button("Liberar", type="primary") and len(period) == 2:
                start, end = period
                days = [start + timedelta(days=i) for i in range((end - start).days + 1)]
                if weekdays_only: days = [d for d in days if d.weekday() < 5]
                added = self.services.availability.add_dates(self.user, days)
                st.toast(f"{added} data(s) liberada(s).", icon="✅"); st.rerun()
        if dates:
            to_remove = st.multiselect("Datas liberadas", dates, format_func=lambda d: d.strftime('%d/%m/%Y (%a)'))
            if st.button("Remover selecionadas", disabled=not to_remove):
                self.services.availability.remove_dates(self.user, to_remove); st.rerun()
        else:
            st.info("Nenhuma data liberada.")

    def render_users(self):
        st.header("👥 Usuários")
        roles = sorted(self.services.permissions.roles)
        if self.user.role == "superadmin": roles.append("superadmin")
        for u in self.services.auth.get_all_users():
            is_self = u.uid == self.user.uid
            with st.container(border=True):
                c1, c2, c3 = st.columns([4, 2, 1])
                c1.markdown(f"**{u.display_name}** ({u.email}){' · 🚫 bloqueado' if u.blocked else ''}")
                c1.caption(f"Último acesso: {format_datetime(u.last_active)}")
                options = roles if u.role in roles else roles + [u.role]
                role = c2.selectbox("Cargo", options, index=options.index(u.role), key=f"role_{u.uid}",
                                    disabled=is_self, label_visibility="collapsed")
                if role != u.role:
                    try:
                        self.services.auth.update_role(self.user, u.uid, role); st.rerun()
                    except ValueError as e:
                        st.error(str(e))
                label = "Desbloquear" if u.blocked else "Bloquear"
                if c3.button(label, key=f"block_{u.uid}", disabled=is_self):
                    self.services.auth.block_user(self.user, u.uid, not u.blocked); st.rerun()


# -----------------------------------------------------------------------------
# PONTO DE ENTRADA DA APLICAÇÃO
# -----------------------------------------------------------------------------

@st.cache_resource
def get_services() -> Services:
    settings = load_settings(st.secrets)
    configure_logging(settings)
    return build_services(settings)


if __name__ == "__main__":
    try:
        app = ViewManager(get_services())
        app.run()
    except Exception as e:
        st.error("Ocorreu um erro crítico na aplicação.")
        st.exception(e)
        logger.critical(f"Erro crítico na aplicação: {e}", exc_info=True)
