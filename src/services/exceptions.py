# src/services/exceptions.py

# --- Remote Execution Exceptions ---
class ConfigurationError(Exception):
    """SSH 키, 호스트, 사용자 설정이 누락되었거나 잘못되었을 때"""
    pass

class TransportError(Exception):
    """SSH 연결, 협상, 인증에 실패했을 때"""
    pass

class RemoteTimeoutError(Exception):
    """원격 명령이 제한 시간 내에 종료되지 않았을 때"""
    pass

class ParseError(Exception):
    """PM2 출력(jlist)이 올바른 JSON 목록이 아닐 때"""
    pass

class SupervisorCommandError(Exception):
    """PM2 상태 조회 명령 자체가 실패(non-zero exit)했을 때"""
    pass

# --- Not Found Exceptions ---
class ProjectNotFoundError(Exception):
    """프로젝트를 찾을 수 없을 때"""
    pass

class ProcessNotFoundError(Exception):
    """PM2 프로세스를 찾을 수 없을 때"""
    pass

# --- Conflict Exceptions ---
class ProjectAlreadyExistsError(Exception):
    """프로젝트 이름이 이미 존재할 때"""
    pass

class DirectoryExistsError(Exception):
    """clone 대상 디렉터리가 원격 호스트에 이미 존재할 때"""
    pass

class RepositoryCloneError(Exception):
    """git clone 명령이 실행되었으나 실패했을 때"""
    pass


def reraise_with_operation(operation: str, error: Exception):
    """
    하위 계층의 예외를 같은 클래스로, 작업 이름을 붙여 다시 발생시킵니다.

    클래스를 유지하므로 요청 계층에서 예외 타입별 HTTP 상태 매핑이 그대로 동작합니다.
    """
    message = f"{operation} failed: {error}"
    try:
        wrapped = type(error)(message)
    except TypeError:
        # 메시지 하나로 생성할 수 없는 예외 클래스
        wrapped = RuntimeError(message)
    raise wrapped from error
