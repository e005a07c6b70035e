"""Tests for the run driver: runtime limits, inputs, memory map and result shape."""

from backend.tinybasic.interpreter import Interpreter


def test_step_limit():
    it = Interpreter()
    it.max_steps = 5
    res = it.run("10 goto 10")
    assert res["errors"]["code"] == "STEP_LIMIT"
    assert res["errors"]["line"] == 10
    assert "Step limit exceeded" in res["warnings"]
    assert res["steps"] == 5


def test_step_limit_from_settings():
    res = Interpreter().run("10 a=a+1\n20 goto 10", settings={"max_steps": 7})
    assert res["errors"]["code"] == "STEP_LIMIT"
    assert res["variables"]["a"] == 4


def test_output_limit():
    it = Interpreter()
    it.max_output_chars = 10
    code = "\n".join(f'{n} print "abcdefghij"' for n in range(10, 60, 10))
    res = it.run(code)
    assert res["errors"] and res["errors"]["code"] == "OUTPUT_LIMIT"
    assert res["output"] == "abcdefghij"


def test_time_limit():
    res = Interpreter().run("10 goto 10", settings={"max_time_s": 0.01, "max_steps": 10**9})
    assert res["errors"]["code"] == "TIMEOUT"


def test_result_shape_on_success():
    res = Interpreter().run('10 a=6*7\n20 print "a=",a\n30 end')
    assert set(res) == {"output", "warnings", "errors", "steps", "variables", "memory"}
    assert res["errors"] is None
    assert res["output"] == "a= 42\n"
    assert res["steps"] == 3
    assert res["variables"] == {"a": 42}
    assert res["warnings"] == []
    assert res["memory"] == {}


def test_inputs_seed_variables():
    res = Interpreter().run("10 print a*2", inputs={"a": 5})
    assert res["output"] == "10\n"


def test_bad_inputs_are_reported():
    res = Interpreter().run("10 print a", inputs={"ab": 1})
    assert res["errors"]["code"] == "INPUT_ERROR"
    res = Interpreter().run("10 print a", inputs={"a": "x"})
    assert res["errors"]["code"] == "INPUT_ERROR"


def test_variables_do_not_leak_between_runs():
    it = Interpreter()
    it.run("10 a=9")
    res = it.run("10 print a")
    assert res["output"] == "0\n"


def test_memory_preload_and_snapshot():
    code = "10 peek 5, a\n20 poke 10, a*0+300\n30 print a"
    res = Interpreter().run(code, settings={"memory": {"5": 7}})
    assert res["errors"] is None
    assert res["output"] == "7\n"
    assert res["memory"] == {"5": 7, "10": 44}


def test_memory_out_of_range():
    res = Interpreter().run("10 poke 70000, 1")
    assert res["errors"]["code"] == "MEMORY_ERROR"
    assert res["errors"]["line"] == 10


def test_invalid_memory_preload():
    res = Interpreter().run("10 end", settings={"memory": {"99999": 1}, "memory_size": 16})
    assert res["errors"]["code"] == "MEMORY_ERROR"


def test_unknown_line_error_dict():
    res = Interpreter().run("10 print 1\n20 goto 99")
    assert res["output"] == "1\n"
    err = res["errors"]
    assert err["code"] == "UNKNOWN_LINE"
    assert err["line"] == 20
    assert "99" in err["message"]
    assert err["hint"]


def test_unreturned_gosub_warning():
    res = Interpreter().run("10 gosub 20\n20 print 1")
    assert res["errors"] is None
    assert any("unreturned gosub" in w for w in res["warnings"])


def test_unfinished_for_warning():
    res = Interpreter().run("10 for i=1 to 3\n20 print i")
    assert any("unfinished for" in w for w in res["warnings"])


def test_strict_capacity_setting():
    strict = Interpreter().run("10 gosub 10")
    assert strict["errors"]["code"] == "CAPACITY_EXCEEDED"
    lenient = Interpreter().run("10 gosub 10", settings={"strict_capacity": False})
    assert lenient["errors"] is None
    assert any("10 unreturned gosub" in w for w in lenient["warnings"])


def test_run_restores_host_output_and_memory():
    it = Interpreter()
    output, memory = it.output, it.memory
    it.run('10 print "x"\n20 poke 1, 1')
    assert it.output is output
    assert it.memory is memory


def test_capacity_override_applies_to_one_run_only():
    it = Interpreter()
    lenient = it.run("10 gosub 10", settings={"strict_capacity": False})
    assert lenient["errors"] is None
    assert it.strict_capacity is True
    res = it.run("10 gosub 10")
    assert res["errors"]["code"] == "CAPACITY_EXCEEDED"
