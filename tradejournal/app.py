"""
app.py
------

Main entry point for the Flask web application that provides the
journal's user interface. The UI lets traders log trades, close open
positions, review performance analytics, manage broker connections and
export their history. Business logic lives in the portfolio store and the
analytics module; the views only translate requests into store calls and
render the results.

To run the application:
    1. Install the package (``pip install -e .``).
    2. Configure the environment (see ``config.py``); with no user id the
       app starts in guest/demo mode on sample data.
    3. Execute ``python -m tradejournal.app`` and navigate to
       http://localhost:5004 in your web browser.

Note: The Flask development server is intended for local use. For
production deployments consider using a production WSGI server
such as Gunicorn.
"""
import csv
import io
import logging
from typing import Any, Dict, Mapping, Optional

from flask import (
    Flask, render_template, request, redirect, url_for,
    flash, jsonify, Response, abort
)

from .brokers import BROKER_CONFIGS, broker_types
from .config import Config
from .errors import BrokerValidationError, PersistenceError, StoreBusyError
from .formatting import change_class, format_currency, format_date, format_percentage
from .models import MARKET_TYPES, SIDES, STATUSES, Trade
from .session import Session, select_provider
from .store import PortfolioStore

BUSY_MESSAGE = "Another request is still in progress. Try again in a moment."

EXPORT_COLUMNS = [
    "id", "symbol", "side", "quantity", "entry_price", "exit_price",
    "profit_loss", "status", "market_type", "created_at", "closed_at",
]


def trade_json(trade: Trade) -> Dict[str, Any]:
    row = trade.to_row()
    row.pop("user_id", None)
    return row


def build_store(config: Config) -> PortfolioStore:
    session = Session.from_config(config)
    provider = select_provider(session, config)
    return PortfolioStore(provider, session, connect_delay=config.CONNECT_DELAY)


def create_app(overrides: Optional[Mapping[str, Any]] = None, store: Optional[PortfolioStore] = None):
    config = Config.from_env().override(overrides)
    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.SECRET_KEY
    app.logger.setLevel(config.LOG_LEVEL)
    # monthly P&L keys must keep their grouping order
    app.json.sort_keys = False

    store = store or build_store(config)
    app.extensions["portfolio_store"] = store
    app.logger.info(
        "Portfolio store ready (provider=%s, guest=%s)", store.provider.name, store.is_guest
    )

    app.add_template_filter(format_currency, "currency")
    app.add_template_filter(format_percentage, "percentage")
    app.add_template_filter(format_date, "date")
    app.add_template_filter(change_class, "change")

    def log_refresh(s: PortfolioStore) -> None:
        app.logger.debug("Store refreshed: %d trades, %d brokers", len(s.trades), len(s.brokers))

    store.subscribe(log_refresh)

    @app.context_processor
    def inject_mode():
        return {
            "is_guest": store.is_guest,
            "submitting": store.submitting,
            "loading": store.loading,
        }

    # ---------- routes ----------
    @app.route("/health")
    def health_check():
        return jsonify({"status": "healthy"})

    @app.route("/")
    async def index():
        await store.ensure_loaded()
        return render_template(
            "dashboard.html",
            title="Dashboard",
            stats=store.stats,
            recent=store.recent_trades(),
            series=store.chart_data()["cumulative_pnl"],
            portfolio_value=store.portfolio_value(),
        )

    @app.route("/trades")
    async def trades():
        await store.ensure_loaded()
        return render_template("trades.html", title="Trades", trades=store.trades)

    @app.route("/trades/add", methods=["GET", "POST"])
    async def add_trade():
        await store.ensure_loaded()
        form_ctx = dict(
            title="Add Trade", brokers=store.brokers,
            sides=SIDES, statuses=STATUSES, market_types=MARKET_TYPES,
        )
        if request.method == "POST":
            fields = {
                "symbol": request.form.get("symbol", "").strip(),
                "side": request.form.get("side", "buy").strip().lower(),
                "quantity": request.form.get("quantity", "").strip(),
                "entry_price": request.form.get("entry_price", "").strip(),
                "exit_price": request.form.get("exit_price", "").strip() or None,
                "market_type": request.form.get("market_type", "forex").strip().lower(),
                "status": request.form.get("status", "open").strip().lower(),
                "broker_id": request.form.get("broker_id", "").strip()
                or (store.brokers[0].id if store.brokers else ""),
            }
            try:
                await store.add_trade(fields)
            except StoreBusyError:
                flash(BUSY_MESSAGE, "error")
                return render_template("add_trade.html", form=request.form, **form_ctx), 409
            except (ValueError, KeyError) as e:
                flash(f"Invalid trade: {e}", "error")
                return render_template("add_trade.html", form=request.form, **form_ctx), 400
            except PersistenceError as e:
                app.logger.error("Error adding trade: %s", e)
                flash(f"Could not save trade: {e.message}", "error")
                return render_template("add_trade.html", form=request.form, **form_ctx), 502
            flash("Trade added.", "success")
            return redirect(url_for("trades"))

        return render_template("add_trade.html", form={}, **form_ctx)

    @app.route("/trades/<trade_id>/close", methods=["POST"])
    async def close_trade(trade_id: str):
        try:
            await store.close_trade(trade_id, request.form["exit_price"])
        except StoreBusyError:
            flash(BUSY_MESSAGE, "error")
        except (ValueError, KeyError) as e:
            flash(f"Cannot close trade: {e}", "error")
        except PersistenceError as e:
            app.logger.error("Error closing trade %s: %s", trade_id, e)
            flash(f"Could not update trade: {e.message}", "error")
        else:
            flash("Trade closed.", "success")
        return redirect(url_for("trades"))

    @app.route("/analytics")
    async def analytics():
        await store.ensure_loaded()
        return render_template(
            "analytics.html",
            title="Analytics",
            metrics=store.performance(),
            charts=store.chart_data(),
        )

    @app.route("/brokers")
    async def brokers():
        await store.ensure_loaded()
        return render_template(
            "brokers.html", title="Brokers", brokers=store.brokers, broker_types=broker_types()
        )

    @app.route("/brokers/add", methods=["GET", "POST"])
    async def add_broker():
        if request.method == "POST":
            fields = {
                "name": request.form.get("name", "").strip(),
                "api_key": request.form.get("api_key", ""),
                "api_secret": request.form.get("api_secret", ""),
            }
            try:
                await store.add_broker(fields)
            except StoreBusyError:
                flash(BUSY_MESSAGE, "error")
                return render_template("add_broker.html", title="Add Broker", form=request.form), 409
            except ValueError as e:
                flash(str(e), "error")
                return render_template("add_broker.html", title="Add Broker", form=request.form), 400
            except PersistenceError as e:
                app.logger.error("Error adding broker: %s", e)
                flash(f"Could not save broker: {e.message}", "error")
                return render_template("add_broker.html", title="Add Broker", form=request.form), 502
            flash("Broker added.", "success")
            return redirect(url_for("brokers"))

        return render_template("add_broker.html", title="Add Broker", form={})

    @app.route("/brokers/connect/<broker_type>", methods=["GET", "POST"])
    async def connect_broker(broker_type: str):
        cfg = BROKER_CONFIGS.get(broker_type)
        if cfg is None:
            abort(404)
        ctx = dict(title=f"Connect {broker_type}", broker_type=broker_type, cfg=cfg)
        if request.method == "POST":
            credentials = {f["name"]: request.form.get(f["name"], "") for f in cfg["fields"]}
            try:
                await store.connect_broker(broker_type, credentials)
            except StoreBusyError:
                return render_template("connect_broker.html", error=BUSY_MESSAGE, **ctx), 409
            except BrokerValidationError as e:
                return render_template("connect_broker.html", error=str(e), **ctx), 400
            except PersistenceError as e:
                app.logger.error("Error connecting broker: %s", e)
                return render_template(
                    "connect_broker.html", error="Failed to connect to broker", **ctx
                ), 502
            flash(f"{broker_type} connected.", "success")
            return redirect(url_for("brokers"))

        return render_template("connect_broker.html", error=None, **ctx)

    @app.route("/settings")
    async def settings():
        profile = await store.profile()
        return render_template(
            "settings.html", title="Settings", profile=profile, provider=store.provider.name
        )

    @app.route("/export", methods=["GET"], endpoint="export")
    async def export_trades():
        await store.ensure_loaded()
        out = io.StringIO()
        w = csv.writer(out)
        w.writerow(EXPORT_COLUMNS)
        for t in store.trades:
            row = t.to_row()
            w.writerow(["" if row[c] is None else row[c] for c in EXPORT_COLUMNS])
        out.seek(0)
        return Response(
            out.getvalue(),
            mimetype="text/csv",
            headers={"Content-Disposition": "attachment; filename=trades.csv"},
        )

    # -------- JSON API --------
    @app.route("/api/stats")
    async def api_stats():
        await store.ensure_loaded()
        data = store.stats.as_dict()
        data["portfolio_value"] = store.portfolio_value()
        return jsonify(data)

    @app.route("/api/trades")
    async def api_trades():
        await store.ensure_loaded()
        return jsonify([trade_json(t) for t in store.trades])

    @app.route("/api/analytics")
    async def api_analytics():
        await store.ensure_loaded()
        data = {"metrics": store.performance().as_dict()}
        data.update(store.chart_data())
        return jsonify(data)

    return app


# Run directly
if __name__ == "__main__":
    cfg = Config.from_env()
    logging.basicConfig(
        level=cfg.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    app = create_app()
    app.run(host=cfg.HOST, port=cfg.PORT, debug=True, use_reloader=False)
