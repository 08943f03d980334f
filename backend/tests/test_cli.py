"""
CLI command tests (flask system / employees / products).
"""

from bms_pos.models import Employee, SystemSettings


class TestSystemInit:
    def test_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0, result.output
        assert "Created default manager MGR001" in result.output

        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0, result.output
        assert "Using existing manager" in result.output

        assert db_session.query(Employee).filter_by(role="Manager").count() == 1
        assert db_session.query(SystemSettings).count() == 1


class TestEmployeeCommands:
    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "employees", "create",
            "--code", "EMP777", "--name", "Jo Temp", "--role", "Cashier", "--pin", "314159",
        ])
        assert result.exit_code == 0, result.output
        assert "EMP777" in result.output

        result = runner.invoke(args=["employees", "list"])
        assert "Jo Temp" in result.output

    def test_create_rejects_bad_pin(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            "employees", "create",
            "--code", "EMP778", "--name", "Bad Pin", "--role", "Cashier", "--pin", "12",
        ])
        assert result.exit_code != 0
        assert db_session.query(Employee).filter_by(employee_code="EMP778").count() == 0


class TestProductCommands:
    def test_low_stock(self, app, db_session, product, cheap_product):
        cheap_product.stock_quantity = 1
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["products", "low-stock"])
        assert result.exit_code == 0
        assert "Gadget" in result.output
        assert "Widget" not in result.output
