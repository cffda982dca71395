"""Locators for the copyright-appeal page flow.

Everything that depends on the target page's markup lives here so that a page
redesign only touches this module.
"""

from __future__ import annotations

from dataclasses import dataclass


UPLOADED_ITEM_SELECTORS = (
    ".el-upload-list__item",
    ".el-upload-list--picture-card .el-upload-list__item",
    '[class*="upload-list"] [class*="item"]',
)


@dataclass(frozen=True)
class UploadWidget:
    """Locator bundle for one upload widget; selectors are relative to ``scope``."""

    name: str
    scope: str
    input_selector: str = ".el-upload__input"
    trigger_selector: str = ".el-upload"
    item_selectors: tuple[str, ...] = UPLOADED_ITEM_SELECTORS

    def scoped(self, selector: str) -> str:
        if not self.scope:
            return selector
        return f"{self.scope} {selector}"

    @property
    def label(self) -> str:
        return self.scope or self.name


@dataclass(frozen=True)
class AppealPageModel:
    apply_url: str
    name_input: str
    phone_input: str
    email_input: str
    id_number_input: str
    id_card_upload: UploadWidget
    next_button: str
    owner_input: str
    auth_start_input: str
    auth_end_input: str
    auth_doc_upload: UploadWidget
    work_type_select: str
    work_type_option: str
    work_name_input: str
    work_start_input: str
    work_end_input: str
    proof_doc_upload: UploadWidget
    infringing_url_input: str
    description_input: str
    original_url_input: str
    pledge_checkbox: str
    submit_button: str
    appeal_description: str

    def work_type_option_for(self, work_type: str) -> str:
        escaped = work_type.replace('"', '\\"')
        return self.work_type_option.format(value=escaped)

    def upload_widget(self, name: str) -> UploadWidget:
        for widget in (self.id_card_upload, self.auth_doc_upload, self.proof_doc_upload):
            if widget.name == name:
                return widget
        raise KeyError(f"Unknown upload widget: {name}")


BILIBILI_APPEAL_PAGE = AppealPageModel(
    apply_url="https://www.bilibili.com/v/copyright/apply?origin=home",
    name_input='input[placeholder="真实姓名"].el-input__inner',
    phone_input='input[placeholder="手机号"].el-input__inner',
    email_input='.el-form-item:has-text("邮箱") input.el-input__inner',
    id_number_input='input[placeholder="证件号码"].el-input__inner',
    id_card_upload=UploadWidget(name="id_card", scope='.el-form-item:has-text("证件证明")'),
    next_button='button:has-text("下一步")',
    owner_input='.el-form-item:has-text("权利人") input.el-input__inner',
    auth_start_input='.el-form-item:has-text("授权期限") input[placeholder="起始时间"]',
    auth_end_input='.el-form-item:has-text("授权期限") input[placeholder="结束时间"]',
    auth_doc_upload=UploadWidget(name="auth_doc", scope='.el-form-item:has-text("授权证明")'),
    work_type_select='.el-form-item:has-text("著作类型") .el-select',
    work_type_option='.el-select-dropdown__item:has-text("{value}")',
    work_name_input='.el-form-item:has-text("著作名称") input.el-input__inner',
    work_start_input='.el-form-item:has-text("期限") input[placeholder="起始时间"]',
    work_end_input='.el-form-item:has-text("期限") input[placeholder="结束时间"]',
    proof_doc_upload=UploadWidget(
        name="proof_doc",
        scope='.el-form-item:has-text("证明"):not(:has-text("授权证明")):not(:has-text("证件证明"))',
    ),
    infringing_url_input='input[placeholder*="他人发布的B站侵权链接"]',
    description_input='textarea[placeholder*="该链接内容全部"]',
    original_url_input='.textarea-wrapper:has-text("原创链接") input',
    pledge_checkbox='.el-checkbox__label:has-text("本人保证")',
    submit_button='button:has-text("提交")',
    appeal_description=(
        "该链接内容全部侵犯了本人的知识产权，未经本人授权使用。"
        "本人对该内容拥有完整的知识产权，要求B站平台立即删除侵权内容。"
    ),
)
