"""
Streamlit Frontend for ReceiptWise

A digital wallet for receipts: snap or paste a receipt, review what was
read, confirm, and get alerts, budgets and answers from your own data.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before anything is saved
3. Clear error messages in simple language
4. Everything derived (alerts, budgets, charts) is recomputed from the
   active wallet on every run

All state (receipt store, budget book, active wallet) lives in
st.session_state, so each browser session has its own wallet.
"""

import asyncio
from datetime import date
from decimal import Decimal
from html import escape

import streamlit as st

from receiptwise.agents import ExtractionFailedError
from receiptwise.audit import create_correlation_id
from receiptwise.categories import style_for
from receiptwise.config import get_settings, validate_all_settings
from receiptwise.export import receipt_qr_png
from receiptwise.insights import InvalidBudgetError
from receiptwise.models.alert import AlertSeverity
from receiptwise.models.receipt import Category, Wallet
from receiptwise.orchestrator import (
    AppComponents,
    AssistantFlow,
    DashboardFlow,
    DashboardView,
    ReceiptUploadFlow,
    create_app_components,
)
from receiptwise.services import ImageUploadError


# Page configuration
st.set_page_config(
    page_title="ReceiptWise Wallet",
    page_icon="🧾",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .receipt-card {
        padding: 14px 18px;
        border-radius: 10px;
        border: 1px solid #e2e8f0;
        margin: 8px 0;
    }
    .fraud-card {
        border-left: 5px solid #dc3545;
    }
</style>
""", unsafe_allow_html=True)


PAGES = [
    "👛 Wallet",
    "📊 Analytics",
    "🔔 Smart Alerts",
    "🎯 Budgets",
    "🤖 Ask AI",
    "➕ Add Receipt",
    "📁 Export",
    "⚙️ Settings",
]


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def money(amount: Decimal) -> str:
    return f"{get_settings().app.currency_symbol}{amount:,.2f}"


def get_components() -> AppComponents:
    """Get or create this session's components."""
    if "components" not in st.session_state:
        st.session_state.components = create_app_components()
    return st.session_state.components


def main():
    """Main application entry point."""
    st.sidebar.title("🧾 ReceiptWise")
    st.sidebar.markdown("---")

    page = st.sidebar.radio("Navigate to:", PAGES, index=0)

    if page == "⚙️ Settings":
        render_settings_page()
        return

    try:
        components = get_components()
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        st.info("Open the ⚙️ Settings page to check your configuration.")
        st.stop()

    wallet = st.sidebar.selectbox(
        "Active wallet",
        options=list(Wallet),
        format_func=lambda w: w.value,
        key="active_wallet",
    )
    st.sidebar.caption(f"{len(components.receipt_storage)} receipts in total")

    today = date.today()
    view = run_async(
        components.dashboard_flow.build(wallet, today, components.budget_book)
    )

    if page == "👛 Wallet":
        render_wallet_page(view)
    elif page == "📊 Analytics":
        render_analytics_page(view)
    elif page == "🔔 Smart Alerts":
        render_alerts_page(view)
    elif page == "🎯 Budgets":
        render_budgets_page(view, components)
    elif page == "🤖 Ask AI":
        render_assistant_page(components.assistant_flow, wallet, today)
    elif page == "➕ Add Receipt":
        render_add_receipt_page(components.upload_flow, wallet, today)
    elif page == "📁 Export":
        render_export_page(components.dashboard_flow, view, today)


def render_wallet_page(view: DashboardView):
    """Receipts of the active wallet, newest first."""
    st.title(f"👛 {view.wallet.value} Wallet")

    if not view.receipts:
        st.info("No receipts yet. Use '➕ Add Receipt' to add your first one.")
        return

    for receipt in view.receipts:
        style = style_for(receipt.category)
        css = "receipt-card fraud-card" if receipt.is_fraudulent else "receipt-card"
        when = receipt.purchase_date.strftime("%d %b %Y") if receipt.purchase_date else "Unknown date"
        st.markdown(f"""
        <div class="{css}">
            <strong>{style.icon} {escape(receipt.vendor)}</strong>
            <span style="float:right"><strong>{money(receipt.total_amount)}</strong></span><br/>
            <span style="color:{style.color}">{escape(receipt.category)}</span> · {when}
        </div>
        """, unsafe_allow_html=True)

        with st.expander("Details"):
            if receipt.is_fraudulent:
                st.error(f"🚩 Possibly fraudulent: {receipt.fraudulent_details}")
            if receipt.line_items:
                st.table([
                    {"Item": item.name, "Price": money(item.price)}
                    for item in receipt.line_items
                ])
            st.caption(
                f"Category confidence {receipt.confidence:.0%} · "
                f"added from {receipt.source.value}"
            )

            st.markdown("**🔳 Digital Pass**")
            qr_png = receipt_qr_png(receipt)
            if qr_png is None:
                st.caption("QR code unavailable for this receipt.")
            else:
                st.image(qr_png, width=192)
                st.caption("Scan for quick returns or to share receipt data.")


def render_analytics_page(view: DashboardView):
    """Headline numbers and the category breakdown."""
    st.title("📊 Spending Analytics")
    summary = view.summary

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total spent", money(summary.total_spent))
    col2.metric("Receipts", summary.receipt_count)
    col3.metric("Average receipt", money(summary.average_spend))
    col4.metric("Flagged", summary.fraudulent_count)

    if summary.top_vendor:
        st.markdown(f"Most visited vendor: **{summary.top_vendor}**")

    if not view.category_spend:
        st.info("Add some receipts to see where your money goes.")
        return

    st.markdown("### Spending by Category")
    st.bar_chart(
        {entry.category.value: float(entry.total) for entry in view.category_spend}
    )
    for entry in view.category_spend:
        style = style_for(entry.category)
        st.markdown(
            f"{style.icon} **{entry.category.value}**: "
            f"{money(entry.total)} ({entry.share:.0f}%)"
        )


def render_alerts_page(view: DashboardView):
    """Smart alerts for the active wallet."""
    st.title("🔔 Smart Alerts")

    if not view.alerts:
        st.success("✅ No alerts right now. Your spending looks normal.")
        return

    for alert in view.alerts:
        text = f"**{alert.title}**\n\n{alert.description}"
        if alert.severity == AlertSeverity.DESTRUCTIVE:
            st.error(text, icon="🚨")
        elif alert.severity == AlertSeverity.WARNING:
            st.warning(text, icon="⚠️")
        else:
            st.info(text, icon="💡")


def render_budgets_page(view: DashboardView, components: AppComponents):
    """Budget progress per category and the form to change limits."""
    st.title("🎯 Budgets")

    for progress in view.budget_progress:
        style = style_for(progress.category)
        st.markdown(f"{style.icon} **{progress.category}**")
        if not progress.has_budget:
            st.caption(f"{money(progress.spent)} spent · {progress.limit_label}")
            continue

        st.progress(min(progress.percentage, 100.0) / 100)
        caption = f"{money(progress.spent)} of {money(progress.limit)} ({progress.percentage:.0f}%)"
        if progress.status == "over":
            st.error(f"{caption} · over by {money(progress.overage)}")
        elif progress.status == "warning":
            st.warning(caption)
        else:
            st.caption(caption)

    st.markdown("---")
    st.markdown("### Set a Budget")

    with st.form("budget_form"):
        category = st.selectbox(
            "Category",
            options=[c.value for c in Category],
        )
        limit = st.number_input(
            "Monthly limit",
            min_value=0.0,
            step=500.0,
            format="%.2f",
            help="Set 0 to keep the category without a budget",
        )
        submitted = st.form_submit_button("💾 Save Budget", type="primary")

    if submitted:
        try:
            run_async(
                components.dashboard_flow.update_budget(
                    components.budget_book,
                    category,
                    Decimal(str(limit)),
                )
            )
            st.success(f"Budget for {category} set to {money(Decimal(str(limit)))}")
            st.rerun()
        except InvalidBudgetError as e:
            st.error(str(e))


def render_assistant_page(
    assistant_flow: AssistantFlow,
    wallet: Wallet,
    today: date,
):
    """Chat over the active wallet's receipts, plus tips."""
    st.title("🤖 Ask AI")
    st.markdown("Ask anything about your receipts.")

    if "chat" not in st.session_state:
        st.session_state.chat = []

    for role, content in st.session_state.chat:
        with st.chat_message(role):
            st.markdown(content)

    question = st.chat_input("e.g., How much did I spend on dining this month?")
    if question:
        st.session_state.chat.append(("user", question))
        with st.spinner("Looking through your receipts..."):
            answer = run_async(
                assistant_flow.ask(
                    question,
                    wallet,
                    today,
                    correlation_id=create_correlation_id(),
                )
            )
        st.session_state.chat.append(("assistant", answer))
        st.rerun()

    st.markdown("---")
    st.markdown("### 💡 Personalised Tips")
    if st.button("Generate tips"):
        with st.spinner("Analysing your spending..."):
            tips = run_async(assistant_flow.tips(wallet))
        if not tips:
            st.info("No tips right now. Add a few more receipts and try again.")
        for tip in tips:
            st.markdown(f"**{tip.title}** · _{tip.type.replace('_', ' ')}_")
            st.markdown(tip.description)


def render_add_receipt_page(
    upload_flow: ReceiptUploadFlow,
    wallet: Wallet,
    today: date,
):
    """Photo or pasted text → review → explicit confirmation."""
    st.title("➕ Add Receipt")

    if "upload_state" not in st.session_state:
        st.session_state.upload_state = "idle"  # idle, reviewing, saved
    if "review" not in st.session_state:
        st.session_state.review = None
    if "correlation_id" not in st.session_state:
        st.session_state.correlation_id = None

    if st.session_state.upload_state == "idle":
        photo_tab, text_tab = st.tabs(["📷 Photo", "💬 SMS / Email"])

        with photo_tab:
            uploaded_file = st.file_uploader(
                "Choose a receipt photo",
                type=get_settings().app.supported_formats_list,
                help="Take a clear, well-lit photo of your receipt",
            )
            if uploaded_file and st.button("🔍 Read Receipt", type="primary"):
                st.session_state.correlation_id = create_correlation_id()
                with st.spinner("Reading your receipt... Please wait."):
                    try:
                        _, _, image, message = run_async(
                            upload_flow.process_image(
                                image_bytes=uploaded_file.getvalue(),
                                filename=uploaded_file.name,
                                mime_type=uploaded_file.type,
                                correlation_id=st.session_state.correlation_id,
                            )
                        )
                        if image is None:
                            st.error(message)
                            st.stop()
                        st.session_state.review = run_async(
                            upload_flow.extract_from_image(
                                image,
                                today,
                                correlation_id=st.session_state.correlation_id,
                            )
                        )
                        st.session_state.upload_state = "reviewing"
                        st.rerun()
                    except (ImageUploadError, ExtractionFailedError) as e:
                        st.error(str(e))

        with text_tab:
            text = st.text_area(
                "Paste the receipt text",
                placeholder="Your order with Zomato for Rs. 450 is confirmed on 15 July.",
            )
            if st.button("🔍 Parse Text", type="primary") and text.strip():
                st.session_state.correlation_id = create_correlation_id()
                with st.spinner("Parsing..."):
                    try:
                        st.session_state.review = run_async(
                            upload_flow.import_text(
                                text,
                                today,
                                correlation_id=st.session_state.correlation_id,
                            )
                        )
                        st.session_state.upload_state = "reviewing"
                        st.rerun()
                    except ExtractionFailedError as e:
                        st.error(str(e))

    if st.session_state.upload_state == "reviewing":
        render_review(upload_flow, wallet)

    if st.session_state.upload_state == "saved":
        receipt = st.session_state.saved_receipt
        st.markdown(f"""
        <div class="success-box">
            <h3>✅ Receipt Saved!</h3>
            <p><strong>Vendor:</strong> {escape(receipt.vendor)}</p>
            <p><strong>Amount:</strong> {money(receipt.total_amount)}</p>
            <p><strong>Category:</strong> {escape(receipt.category)}</p>
            <p><strong>Wallet:</strong> {receipt.wallet.value}</p>
        </div>
        """, unsafe_allow_html=True)

        if st.button("➕ Add Another Receipt"):
            st.session_state.upload_state = "idle"
            st.session_state.review = None
            st.session_state.saved_receipt = None
            st.rerun()


def render_review(upload_flow: ReceiptUploadFlow, wallet: Wallet):
    """Editable form for the extracted data."""
    review = st.session_state.review
    extracted = review.extracted

    st.subheader("📋 Review Receipt")
    if review.validation.is_valid and not review.validation.warnings:
        st.success(review.message)
    else:
        st.warning(review.message)

    if review.fraud.is_fraudulent:
        st.error(f"🚩 This receipt may be fraudulent: {review.fraud.fraudulent_details}")

    categories = [c.value for c in Category]
    suggested = review.suggestion.category
    col1, col2 = st.columns(2)

    with col1:
        vendor = st.text_input("Vendor *", value=extracted.vendor or "")
        total_amount = st.number_input(
            f"Total Amount ({get_settings().app.currency_symbol}) *",
            value=float(extracted.total_amount or 0),
            min_value=0.0,
            step=1.0,
            format="%.2f",
        )
        category = st.selectbox(
            "Category *",
            options=categories,
            index=categories.index(suggested) if suggested in categories else len(categories) - 1,
            help=review.suggestion.reasoning or None,
        )

    with col2:
        purchase_date = st.date_input("Purchase Date", value=extracted.purchase_date)
        save_to = st.selectbox(
            "Wallet",
            options=list(Wallet),
            index=list(Wallet).index(wallet),
            format_func=lambda w: w.value,
        )
        flagged = st.checkbox("Mark as suspicious", value=review.fraud.is_fraudulent)

    if extracted.line_items:
        st.table([
            {"Item": item.name, "Price": money(item.price)}
            for item in extracted.line_items
        ])

    col1, col2 = st.columns(2)
    with col1:
        if st.button("✅ Confirm and Save", type="primary"):
            if not vendor.strip():
                st.error("Please enter the vendor name")
            elif total_amount <= 0:
                st.error("Please enter a valid amount")
            else:
                receipt = run_async(
                    upload_flow.confirm_and_save(
                        review,
                        vendor=vendor,
                        total_amount=Decimal(str(total_amount)),
                        purchase_date=purchase_date,
                        category=category,
                        wallet=save_to,
                        is_fraudulent=flagged,
                        correlation_id=st.session_state.correlation_id,
                    )
                )
                st.session_state.saved_receipt = receipt
                st.session_state.upload_state = "saved"
                st.rerun()

    with col2:
        if st.button("❌ Discard"):
            run_async(
                upload_flow.reject_extraction(
                    review,
                    reason="User discarded",
                    correlation_id=st.session_state.correlation_id,
                )
            )
            st.session_state.upload_state = "idle"
            st.session_state.review = None
            st.rerun()


def render_export_page(dashboard_flow: DashboardFlow, view: DashboardView, today: date):
    """Download the active wallet as CSV or PDF."""
    st.title("📁 Export")
    st.markdown(f"{len(view.receipts)} receipts in the {view.wallet.value} wallet.")

    if not view.receipts:
        st.info("Nothing to export yet.")
        return

    export_format = st.radio("Format", options=["csv", "pdf"], format_func=str.upper, horizontal=True)

    if st.button("📄 Prepare Export", type="primary"):
        st.session_state.export = (
            export_format,
            run_async(dashboard_flow.export(view.wallet, export_format, today)),
        )

    if st.session_state.get("export") and st.session_state.export[0] == export_format:
        mime = "text/csv" if export_format == "csv" else "application/pdf"
        st.download_button(
            f"⬇️ Download {export_format.upper()}",
            data=st.session_state.export[1],
            file_name=f"receipts-{view.wallet.value.lower()}-{today.isoformat()}.{export_format}",
            mime=mime,
        )


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    status = validate_all_settings()

    sections = [
        ("Gemini (AI)", "gemini"),
        ("Alert thresholds", "alerts"),
        ("Application", "app"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} - OK")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
