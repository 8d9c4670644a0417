from pi_telemetry.main import run

run()
